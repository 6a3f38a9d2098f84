import os
import re
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
RUNTIME_DIR = os.path.join(BASE_DIR, "runtime")

_NUMBERED_KEY = re.compile(r"^GEMINI_API_KEY_(\d+)$")


def _gemini_keys(env) -> Tuple[str, ...]:
    """GEMINI_API_KEY_1..N in numeric order, then GEMINI_API_KEY; blanks and duplicates dropped."""
    numbered = []
    for k, v in env.items():
        m = _NUMBERED_KEY.match(k)
        if m and v and v.strip():
            numbered.append((int(m.group(1)), v.strip()))
    keys = [v for _, v in sorted(numbered)]
    single = (env.get("GEMINI_API_KEY") or "").strip()
    if single:
        keys.append(single)
    return tuple(dict.fromkeys(keys))


def _float(env, name, default):
    raw = env.get(name)
    return float(raw) if raw not in (None, "") else default


def _int(env, name, default):
    raw = env.get(name)
    return int(raw) if raw not in (None, "") else default


@dataclass(frozen=True)
class Settings:
    gemini_api_keys: Tuple[str, ...] = ()
    openrouter_api_key: Optional[str] = field(default=None, repr=False)
    openrouter_model: str = "anthropic/claude-sonnet-4.5"
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"

    topic_model: str = "gemini-2.5-flash"
    quiz_model: str = "gemini-2.5-pro"
    analysis_model: str = "gemini-2.5-flash"

    poll_interval: float = 5.0
    poll_transport_retries: int = 3
    ingest_timeout: float = 300.0
    pipeline_budget: float = 600.0
    http_timeout: float = 120.0

    use_local_stub: bool = False
    database_url: str = "sqlite:///" + os.path.join(RUNTIME_DIR, "quizbackend.db")
    secret_key: str = field(default="dev", repr=False)
    max_upload_mb: int = 100

    def __repr__(self):
        # never print the keys themselves
        return (f"Settings(gemini_keys={len(self.gemini_api_keys)}, "
                f"openrouter={'yes' if self.openrouter_api_key else 'no'}, "
                f"stub={self.use_local_stub}, db={self.database_url})")

    @classmethod
    def from_env(cls, env=None, dotenv_path: str = None) -> "Settings":
        if env is None:
            load_dotenv(dotenv_path=dotenv_path or os.path.join(BASE_DIR, ".env"))
            env = os.environ
        defaults = cls()
        return cls(
            gemini_api_keys=_gemini_keys(env),
            openrouter_api_key=(env.get("OPENROUTER_API_KEY") or "").strip() or None,
            openrouter_model=env.get("OPENROUTER_MODEL") or defaults.openrouter_model,
            openrouter_url=env.get("OPENROUTER_URL") or defaults.openrouter_url,
            topic_model=env.get("GEMINI_TOPIC_MODEL") or defaults.topic_model,
            quiz_model=env.get("GEMINI_QUIZ_MODEL") or defaults.quiz_model,
            analysis_model=env.get("GEMINI_ANALYSIS_MODEL") or defaults.analysis_model,
            poll_interval=_float(env, "POLL_INTERVAL_SECONDS", defaults.poll_interval),
            poll_transport_retries=_int(env, "POLL_TRANSPORT_RETRIES", defaults.poll_transport_retries),
            ingest_timeout=_float(env, "INGEST_TIMEOUT_SECONDS", defaults.ingest_timeout),
            pipeline_budget=_float(env, "PIPELINE_BUDGET_SECONDS", defaults.pipeline_budget),
            http_timeout=_float(env, "HTTP_TIMEOUT_SECONDS", defaults.http_timeout),
            use_local_stub=env.get("USE_LOCAL_STUB") == "1",
            database_url=env.get("DATABASE_URL") or defaults.database_url,
            secret_key=env.get("SECRET_KEY") or defaults.secret_key,
            max_upload_mb=_int(env, "MAX_UPLOAD_MB", defaults.max_upload_mb),
        )
