"""CLI tests through main(argv)."""

import json

import pytest

from zhmood import config
from zhmood.detector import reset_detector
from zhmood.main import main


@pytest.fixture(autouse=True)
def _use_test_detector(detector, monkeypatch):
    monkeypatch.setitem(config.LOGGING_CONFIG, "console", False)
    monkeypatch.setitem(config.LOGGING_CONFIG, "file", False)
    reset_detector(detector)
    yield


class TestCommands:
    def test_detect_json(self, capsys):
        assert main(["detect", "今天太开心了", "--json"]) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["main"] == "高兴"

    def test_detect_text(self, capsys):
        assert main(["detect", "今天太开心了"]) == 0
        out = capsys.readouterr().out
        assert "高兴" in out
        assert "开心" in out

    def test_batch(self, tmp_path, capsys):
        src = tmp_path / "texts.txt"
        src.write_text("开心\n\n难过\n", encoding="utf-8")
        assert main(["batch", str(src)]) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert [json.loads(ln)["main"] for ln in lines] == ["高兴", "悲伤"]

    def test_categories(self, capsys):
        assert main(["categories"]) == 0
        assert capsys.readouterr().out.split() == ["高兴", "愤怒", "悲伤", "焦虑", "疲惫", "平静", "惊讶", "无聊"]

    def test_info_unknown(self, capsys):
        assert main(["info", "快乐"]) == 1

    def test_insights_and_reset(self, capsys, store):
        assert main(["detect", "开心"]) == 0
        assert main(["reset-learning"]) == 0
        assert store.user_patterns["emotionHistory"] == []
        capsys.readouterr()
        assert main(["insights"]) == 0
        assert "message" in json.loads(capsys.readouterr().out)

    def test_merge_lexicon(self, tmp_path, capsys):
        external = tmp_path / "ext.json"
        external.write_text(json.dumps({"高兴": ["愉快"]}, ensure_ascii=False), encoding="utf-8")
        out = tmp_path / "merged.json"
        assert main(["merge-lexicon", str(external), str(out)]) == 0
        assert "愉快" in json.loads(out.read_text(encoding="utf-8"))["高兴"]

    def test_missing_batch_file(self, tmp_path):
        assert main(["batch", str(tmp_path / "nope.txt")]) == 1
