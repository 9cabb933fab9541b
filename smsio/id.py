import secrets
import string

ALPHABET = string.ascii_lowercase + string.digits


def random_id(length: int = 16) -> str:
    """Generate a random base-36 identifier for jobs and stub deliveries."""
    return "".join(secrets.choice(ALPHABET) for _ in range(length))
