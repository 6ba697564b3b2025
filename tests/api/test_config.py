from pathlib import Path

from myfocus.api.config import (
    DEFAULT_DATA_DIR,
    data_dir,
    default_monitoring_config,
    load_local_env,
)


class TestConfig:
    """環境変数による設定のテスト"""

    def test_data_dir_default(self, monkeypatch):
        monkeypatch.delenv("MYFOCUS_DATA_DIR", raising=False)
        assert data_dir() == DEFAULT_DATA_DIR

    def test_data_dir_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MYFOCUS_DATA_DIR", str(tmp_path))
        assert data_dir() == Path(tmp_path)

    def test_load_local_env(self, monkeypatch, tmp_path):
        """.env.local の値が環境変数に読み込まれる"""
        # load_dotenv は os.environ を直接書き換えるので、後片付けを登録しておく
        monkeypatch.setenv("LLM_MODEL", "placeholder")
        monkeypatch.delenv("LLM_MODEL")
        monkeypatch.setenv("LLM_API_TYPE", "claude")
        env_file = tmp_path / ".env.local"
        env_file.write_text("LLM_MODEL=qwen2.5\nLLM_API_TYPE=ollama\n", encoding="utf-8")

        load_local_env(env_file)

        config = default_monitoring_config()
        assert config.ai_config.detection_model == "qwen2.5"
        # 既存の環境変数が優先される
        assert config.ai_config.api_type == "claude"
        assert config.enabled is False
