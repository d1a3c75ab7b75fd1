import argparse
import asyncio
import sys

from sqlalchemy import select

from coursebot.config import load_settings
from coursebot.db import make_engine, make_sessionmaker
from coursebot.models import CourseInstance, Profile

async def main(tg_id: int, course_id: str, org_id: int | None, full_name: str | None) -> None:
    settings = load_settings()
    engine = make_engine(settings)
    Session = make_sessionmaker(engine)

    async with Session() as s:
        profile = await s.get(Profile, tg_id)
        if profile is None:
            profile = Profile(
                id=tg_id,
                full_name=full_name,
                role=settings.role_for(tg_id),
                ui_lang=settings.ui_default_lang,
                current_org_id=org_id,
            )
            s.add(profile)
        elif org_id is not None:
            profile.current_org_id = org_id
        existing = (
            await s.execute(
                select(CourseInstance).where(
                    CourseInstance.student_id == tg_id,
                    CourseInstance.course_id == course_id,
                    CourseInstance.state == "started",
                )
            )
        ).scalar_one_or_none()
        if existing is not None:
            print(f"Already enrolled: course_ref_id={existing.id}")
        else:
            course = CourseInstance(student_id=tg_id, course_id=course_id, org_id=org_id, state="started")
            s.add(course)
            await s.flush()
            print(f"Enrolled: course_ref_id={course.id}")
        await s.commit()
    await engine.dispose()

def _parse(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Enroll a Telegram user in a course.")
    parser.add_argument("tg_id", type=int)
    parser.add_argument("course_id")
    parser.add_argument("--org-id", type=int, default=None)
    parser.add_argument("--name", default=None)
    return parser.parse_args(argv)

if __name__ == "__main__":
    args = _parse(sys.argv[1:])
    asyncio.run(main(args.tg_id, args.course_id, args.org_id, args.name))
