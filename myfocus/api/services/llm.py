"""テキスト解析バックエンドのクライアント (OpenAI互換、Ollama、Claude)."""

import os
import time
from typing import Any

import requests

from myfocus.model.errors import BackendError
from myfocus.model.models import AIConfig
from myfocus.watchers.logger import logger

log = logger.getChild("llm")

HTTP_OK = 200
ROLES = ("detection", "report")
API_TYPES = ("openai", "ollama", "claude")
CLAUDE_API_VERSION = "2023-06-01"


class LLMService:
    """テキスト解析バックエンドのクライアント.

    ``api_type`` で通信形式を、``role`` で使用するモデルを切り替える.
    """

    def __init__(self, config: AIConfig, timeout: float = 30.0) -> None:
        """初期化

        Args:
        config: バックエンド設定（API種別、URL、キー、モデル名）
        timeout: APIタイムアウト(秒)

        """
        self.config = config
        self.base_url = config.api_url.rstrip("/")
        self.timeout = timeout

        self.system_prompt = (
            "You are a focus-state analysis assistant. Judge from the user's "
            "current activity whether they are focused on their work, and answer "
            "exactly in the format requested."
        )

        # 最後のAPI呼び出し時刻（レート制限用）
        self.last_call_time: float = 0.0
        self.min_call_interval = 1.0  # 最小呼び出し間隔（秒）

    @property
    def _ollama_root(self) -> str:
        return self.base_url.removesuffix("/v1")

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_type == "claude":
            headers["x-api-key"] = self.config.api_key
            headers["anthropic-version"] = CLAUDE_API_VERSION
        elif self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def model_for(self, role: str) -> str:
        if role == "detection":
            return self.config.detection_model
        if role == "report":
            return self.config.report_model
        msg = f"unsupported model role: {role}"
        raise BackendError(msg)

    def is_available(self) -> bool:
        """バックエンドが利用可能かチェック."""
        if self.config.api_type == "ollama":
            url = f"{self._ollama_root}/api/tags"
        else:
            url = f"{self.base_url}/models"
        try:
            response = requests.get(url, timeout=5, headers=self._headers())
        except requests.RequestException:
            return False
        else:
            return response.status_code == HTTP_OK

    def list_models(self) -> list[str]:
        """バックエンドが提供するモデルID一覧."""
        if self.config.api_type == "ollama":
            data = self._get_json(f"{self._ollama_root}/api/tags")
            return [m.get("name", "") for m in data.get("models", [])]
        data = self._get_json(f"{self.base_url}/models")
        return [m.get("id", "") for m in data.get("data", [])]

    def _get_json(self, url: str) -> dict[str, Any]:
        try:
            response = requests.get(url, timeout=self.timeout, headers=self._headers())
        except requests.RequestException as e:
            msg = f"request failed: {e}"
            raise BackendError(msg) from e
        if response.status_code != HTTP_OK:
            msg = f"HTTP {response.status_code}: {response.text[:200]}"
            raise BackendError(msg)
        try:
            return response.json()
        except ValueError as e:
            msg = "response is not JSON"
            raise BackendError(msg) from e

    def _rate_limit(self) -> None:
        """レート制限を適用."""
        now = time.time()
        elapsed = now - self.last_call_time
        if elapsed < self.min_call_interval:
            time.sleep(self.min_call_interval - elapsed)
        self.last_call_time = time.time()

    def _build_request(self, prompt: str, model: str) -> tuple[str, dict[str, Any]]:
        api_type = self.config.api_type
        if api_type == "openai":
            return f"{self.base_url}/chat/completions", {
                "model": model,
                "messages": [
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": prompt},
                ],
                "max_tokens": 500,
                "temperature": 0.3,
            }
        if api_type == "ollama":
            return f"{self._ollama_root}/api/generate", {
                "model": model,
                "system": self.system_prompt,
                "prompt": prompt,
                "stream": False,
            }
        if api_type == "claude":
            return f"{self.base_url}/messages", {
                "model": model,
                "max_tokens": 500,
                "system": self.system_prompt,
                "messages": [{"role": "user", "content": prompt}],
            }
        msg = f"unsupported api type: {api_type}"
        raise BackendError(msg)

    def _extract_text(self, data: dict[str, Any]) -> str:
        try:
            if self.config.api_type == "openai":
                content = data["choices"][0]["message"]["content"]
            elif self.config.api_type == "ollama":
                content = data["response"]
            else:
                content = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            msg = f"unexpected {self.config.api_type} response format"
            raise BackendError(msg) from e
        if not isinstance(content, str):
            msg = f"unexpected {self.config.api_type} response content"
            raise BackendError(msg)
        return content.strip()

    def analyze(self, prompt: str, role: str = "detection") -> str:
        """``role`` に対応するモデルへプロンプトを送信する.

        Raises:
            BackendError: 通信に失敗したか応答が不正な場合

        """
        model = self.model_for(role)
        url, payload = self._build_request(prompt, model)

        self._rate_limit()
        start = time.monotonic()
        try:
            response = requests.post(
                url,
                json=payload,
                timeout=self.timeout,
                headers=self._headers(),
            )
        except requests.exceptions.Timeout as e:
            msg = f"{self.config.api_type} request timed out"
            raise BackendError(msg) from e
        except requests.RequestException as e:
            msg = f"{self.config.api_type} request failed: {e}"
            raise BackendError(msg) from e

        if response.status_code != HTTP_OK:
            msg = f"HTTP {response.status_code}: {response.text[:200]}"
            raise BackendError(msg)

        try:
            data = response.json()
        except ValueError as e:
            msg = "response is not JSON"
            raise BackendError(msg) from e

        text = self._extract_text(data)
        log.info(
            "Backend answered (%s, model=%s) in %.2fs: %s chars",
            self.config.api_type,
            model,
            time.monotonic() - start,
            len(text),
        )
        return text


# 便利関数
def ai_config_from_env(base: AIConfig | None = None) -> AIConfig:
    """環境変数の値で ``base`` を上書きする.

    環境変数で設定可能:
    - LLM_API_TYPE: openai / ollama / claude
    - LLM_URL: APIのベースURL（例: https://api.openai.com/v1）
    - LLM_MODEL: 検出用モデル名
    - LLM_REPORT_MODEL: レポート用モデル名
    - LLM_API_KEY: 必要に応じてAPIキー
    """
    config = base or AIConfig()
    overrides = {
        "api_type": os.getenv("LLM_API_TYPE"),
        "api_url": os.getenv("LLM_URL"),
        "detection_model": os.getenv("LLM_MODEL"),
        "report_model": os.getenv("LLM_REPORT_MODEL"),
        "api_key": os.getenv("LLM_API_KEY"),
    }
    return config.model_copy(update={k: v for k, v in overrides.items() if v})


def create_llm_service(config: AIConfig | None = None) -> LLMService:
    """LLMサービスのファクトリ関数."""
    return LLMService(config or ai_config_from_env())
