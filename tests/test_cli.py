import json

from click.testing import CliRunner

from verse_recall.cli import cli


def test_score_command():
    result = CliRunner().invoke(cli, ["score", "For God so love the world", "For God so loved the world"])
    assert result.exit_code == 0
    assert "Score: 0.833 (near_miss)" in result.output
    assert "close    loved" in result.output


def test_hint_command():
    result = CliRunner().invoke(cli, ["hint", "In the beginning God created", "--level", "1"])
    assert result.exit_code == 0
    assert "[Cloze (50% hidden)] In ___ beginning ___ created" in result.output


def test_hint_command_rejects_level():
    result = CliRunner().invoke(cli, ["hint", "text", "--level", "5"])
    assert result.exit_code != 0


def test_init_db_and_import(temp_db, tmp_path):
    csv_path = tmp_path / "verses.csv"
    csv_path.write_text('verse_number,text\n1,"Abba, Father, we cry."\n', encoding="utf-8")
    runner = CliRunner()

    assert runner.invoke(cli, ["init-db"]).exit_code == 0
    first = runner.invoke(cli, ["import-verses", str(csv_path), "--translation", "esv"])
    assert first.exit_code == 0
    assert "Imported 1 verses." in first.output
    again = runner.invoke(cli, ["import-verses", str(csv_path), "--translation", "esv"])
    assert "0 new" in again.output
    assert len(temp_db.get_phrases("esv")) == 1


def test_session_command(user_id):
    result = CliRunner().invoke(cli, ["session", user_id, "--seed", "3"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert len(data["newPhrases"]) == 5
    assert data["reviews"] == []


def test_progress_command(user_id):
    result = CliRunner().invoke(cli, ["progress", user_id])
    assert result.exit_code == 0
    assert "Phrases mastered: 0/7" in result.output
    assert "[ ] Full Chapter Mastered" in result.output
