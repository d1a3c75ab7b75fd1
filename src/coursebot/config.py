from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import List
from dotenv import load_dotenv

load_dotenv()

def _split_csv_ints(s: str) -> List[int]:
    out = []
    for part in (s or "").split(","):
        part = part.strip()
        if part:
            out.append(int(part))
    return out

def _optional_int(s: str | None) -> int | None:
    s = (s or "").strip()
    if not s:
        return None
    return int(s)

@dataclass(frozen=True)
class Settings:
    bot_token: str
    admin_ids: List[int]
    database_url: str
    reviewer_ids: List[int] = field(default_factory=list)
    tasks_dir: str = "./data/tasks"
    tasks_default_lang: str = "ru"  # catalog fallback language
    ui_default_lang: str = "ru"  # ru/en
    review_org_id: int | None = None  # restricts the review queue to one organization
    canvas_url: str | None = None  # drawing mini app for pic tasks

    def role_for(self, tg_user_id: int) -> str:
        if tg_user_id in self.admin_ids:
            return "admin"
        if tg_user_id in self.reviewer_ids:
            return "reviewer"
        return "learner"

def load_settings() -> Settings:
    load_dotenv()
    bot_token = os.getenv("BOT_TOKEN")
    if not bot_token:
        raise RuntimeError("BOT_TOKEN is required")

    admin_ids = _split_csv_ints(os.getenv("ADMIN_IDS", ""))
    if not admin_ids:
        raise RuntimeError("ADMIN_IDS is required (comma-separated Telegram user ids)")
    reviewer_ids = _split_csv_ints(os.getenv("REVIEWER_IDS", ""))

    database_url = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/app.db")
    tasks_dir = os.getenv("TASKS_DIR", "./data/tasks").strip()
    canvas_url = os.getenv("CANVAS_URL", "").strip() or None
    tasks_default_lang = os.getenv("TASKS_DEFAULT_LANG", "ru").strip().lower()
    ui_default_lang = os.getenv("UI_DEFAULT_LANG", "ru").strip().lower()
    if ui_default_lang not in {"ru", "en"}:
        raise RuntimeError("UI_DEFAULT_LANG must be ru or en")
    try:
        review_org_id = _optional_int(os.getenv("REVIEW_ORG_ID"))
    except ValueError:
        raise RuntimeError("REVIEW_ORG_ID must be an integer") from None

    return Settings(
        bot_token=bot_token,
        admin_ids=admin_ids,
        reviewer_ids=reviewer_ids,
        database_url=database_url,
        tasks_dir=tasks_dir,
        tasks_default_lang=tasks_default_lang,
        ui_default_lang=ui_default_lang,
        review_org_id=review_org_id,
        canvas_url=canvas_url,
    )
