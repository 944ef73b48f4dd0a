"""
Photo storage maintenance: removes orphaned photo files, stale temporary
uploads and empty per-user directories.

Meant to be scheduled externally (cron, a Kubernetes CronJob, ...):
    python cleanup_photos.py --min-age-minutes 60
    python cleanup_photos.py --dry-run
"""
import argparse
import logging
from pathlib import Path

from app import app
from models import db, User
from utils.photos import find_orphaned_photos, remove_empty_directories

logger = logging.getLogger(__name__)


def referenced_photos():
    """Every photo reference currently stored on a user"""
    refs = []
    for photos in db.session.execute(db.select(User.photos)).scalars():
        refs.extend(photos or [])
    return refs


def run_cleanup(root: Path, min_age_minutes: int = 60, dry_run: bool = False) -> dict:
    orphans = find_orphaned_photos(root, referenced_photos(), min_age_seconds=min_age_minutes * 60)

    removed_files = []
    for path in orphans:
        if dry_run:
            logger.info(f"[dry-run] Would remove orphaned file {path}")
            continue
        try:
            path.unlink()
            removed_files.append(path)
            logger.info(f"Removed orphaned file {path}")
        except OSError as e:
            logger.warning(f"Could not remove orphaned file {path}: {str(e)}")

    removed_dirs = [] if dry_run else remove_empty_directories(root)
    for directory in removed_dirs:
        logger.info(f"Removed empty directory {directory}")

    return {
        'orphans_found': len(orphans),
        'files_removed': len(removed_files),
        'directories_removed': len(removed_dirs),
    }


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument('--min-age-minutes', type=int, default=60,
                        help='Skip files younger than this (in-flight uploads)')
    parser.add_argument('--dry-run', action='store_true', help='Only report what would be removed')
    args = parser.parse_args()

    with app.app_context():
        root = Path(app.config['UPLOAD_FOLDER'])
        summary = run_cleanup(root, args.min_age_minutes, args.dry_run)
        logger.info(f"Cleanup finished: {summary}")


if __name__ == '__main__':
    main()
