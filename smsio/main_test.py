from typer.testing import CliRunner

from .__main__ import app

runner = CliRunner()


def test_composers_lists_registered_composers():
    result = runner.invoke(app, ["composers"])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0].split(" | ")[0].strip() == "Composer"
    assert any(
        line.startswith("smsio.samples.notifier.Notifier ")
        and "welcome, reminder, opt_out_check" in line
        for line in lines
    )


def test_purge():
    result = runner.invoke(app, ["purge", "urgent, sms"])

    assert result.exit_code == 0
    assert "Purging queue: urgent" in result.output
    assert "Purging queue: sms" in result.output
    assert "Successfully purged 2 queue(s)" in result.output


def test_purge_without_queues():
    result = runner.invoke(app, ["purge", " , "])

    assert result.exit_code == 0
    assert "Error: No valid queue names provided" in result.output


def test_worker_rejects_invalid_queuespec():
    result = runner.invoke(app, ["worker", "sms=0"])

    assert result.exit_code != 0
