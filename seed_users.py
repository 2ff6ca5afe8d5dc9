# seed_users.py
"""Seeds the profiles collection with sample users for local testing."""
import argparse
import logging
import re

from firebase_client import get_db
from profile_manager import PROFILES

logger = logging.getLogger(__name__)

SAMPLE_USERS = [
    {
        "name": "Samantha Bee",
        "shortBio": "Graphic designer who loves to bake sourdough bread. Looking for a coding tutor.",
        "skillsOffered": ["Logo Design", "Illustration", "Baking"],
        "skillsDesired": ["Python", "JavaScript", "Next.js"],
    },
    {
        "name": "Tom Wang",
        "shortBio": "Musician and producer. I can teach you guitar or piano in exchange for photography lessons.",
        "skillsOffered": ["Guitar", "Music Production", "Piano"],
        "skillsDesired": ["Photography", "Photo Editing", "Figma"],
    },
    {
        "name": "Elena Rodriguez",
        "shortBio": "I'm a marketing strategist who wants to learn how to knit!",
        "skillsOffered": ["SEO", "Content Strategy", "Social Media"],
        "skillsDesired": ["Knitting", "Crochet", "Baking"],
    },
    {
        "name": "Ben Carter",
        "shortBio": "Software engineer specializing in Python and data science. I'd love to learn how to play the guitar.",
        "skillsOffered": ["Python", "Data Analysis", "Machine Learning"],
        "skillsDesired": ["Guitar", "Music Production"],
    },
    {
        "name": "Aisha Khan",
        "shortBio": "I'm a professional photographer and editor. In my free time, I'm trying to launch a blog and need help with SEO.",
        "skillsOffered": ["Photography", "Photo Editing", "Lightroom"],
        "skillsDesired": ["SEO", "Content Strategy", "React"],
    },
    {
        "name": "Carlos Gomez",
        "shortBio": "Chef and food blogger. I can teach you how to cook anything! I need some design help for my new project.",
        "skillsOffered": ["Cooking", "Baking", "Recipe Development"],
        "skillsDesired": ["Logo Design", "Illustration", "Figma"],
    },
    {
        "name": "Mei Lin",
        "shortBio": "Figma and UI design expert. I'm looking to pick up some coding skills to bring my designs to life.",
        "skillsOffered": ["UI Design", "Figma", "Illustration"],
        "skillsDesired": ["TypeScript", "Next.js", "React"],
    },
]


def sample_uid(name: str) -> str:
    return "sample-" + re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def seed(db, overwrite: bool = False) -> tuple[int, int]:
    """Returns (written, skipped)."""
    written = skipped = 0
    for user in SAMPLE_USERS:
        uid = sample_uid(user["name"])
        ref = db.collection(PROFILES).document(uid)
        if not overwrite and ref.get().exists:
            skipped += 1
            continue
        ref.set({"uid": uid, "profilePicture": "", "portfolio": [], **user})
        written += 1
    logger.info("Seeded sample users: written=%d skipped=%d", written, skipped)
    return written, skipped


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed Barttle sample profiles")
    parser.add_argument("--overwrite", action="store_true",
                        help="replace sample profiles that already exist")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    written, skipped = seed(get_db(), overwrite=args.overwrite)
    print(f"Done. written={written} skipped={skipped}")


if __name__ == "__main__":
    main()
