import argparse
import logging
import os
import sys

from .client.api_client import AttendanceApiService, ApiError
from .client.local_storage import LocalStorage, LocalStorageService
from .client.tracker import AttendanceTracker, parse_record_date
from .utils.constants import normalize_prayer_name, PRAYER_NAMES
from .utils.time_utils import is_valid_prayer_time, get_valid_prayer_time_range

logger = logging.getLogger(__name__)


def setup_basic_logging(verbose=False):
    """Setup stderr logging for the command line client"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def build_parser():
    parser = argparse.ArgumentParser(prog='awwal', description='Track attended prayers, locally or in your Awwal account.')
    parser.add_argument('--server', default=os.environ.get('AWWAL_SERVER_URL'),
                        help='Awwal server URL (default: $AWWAL_SERVER_URL or http://localhost:5000)')
    parser.add_argument('--token', default=os.environ.get('AWWAL_ID_TOKEN'),
                        help='Google ID token from /auth/callback; omit to track anonymously')
    parser.add_argument('--storage', default=os.environ.get('AWWAL_STORAGE_PATH'),
                        help='Local storage file (default: ~/.awwal/storage.json)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log debug output to stderr')

    commands = parser.add_subparsers(dest='command', required=True)

    today = commands.add_parser('today', help="Show today's prayer times and what you have marked")
    today.add_argument('--lat', type=float)
    today.add_argument('--lon', type=float)

    mark = commands.add_parser('mark', help='Mark a prayer as attended')
    mark.add_argument('prayer', help=f"One of {', '.join(PRAYER_NAMES)} (Indonesian names work too)")
    mark.add_argument('--time', dest='custom_time', help='The time you prayed, HH:MM (detailed mode)')
    mark.add_argument('--date', help='YYYY-MM-DD, defaults to today')
    mark.add_argument('--lat', type=float)
    mark.add_argument('--lon', type=float)

    unmark = commands.add_parser('unmark', help='Remove a marked prayer')
    unmark.add_argument('prayer')
    unmark.add_argument('--date', help='YYYY-MM-DD, defaults to today')

    stats = commands.add_parser('stats', help='Completion rate, streak and timing')
    stats.add_argument('--period', type=int, default=30, help='Days to look back (default 30)')

    commands.add_parser('sync', help='Upload local records to your account')
    commands.add_parser('status', help='Show sync status')
    return parser


def build_tracker(args):
    api = AttendanceApiService(base_url=args.server, id_token=args.token)
    storage = LocalStorageService(LocalStorage(args.storage))
    tracker = AttendanceTracker(api=api, storage=storage)
    tracker.refresh_session()
    tracker.load_attendance_records()
    return tracker


def _fetch_schedule(tracker, date=None, lat=None, lon=None):
    try:
        return tracker.api.get_prayer_times(lat=lat, lon=lon, date=date)
    except ApiError as e:
        logger.warning(f"Prayer times unavailable: {e}")
        return None


def _describe_location(tracker, lat, lon):
    try:
        info = tracker.api.get_location(lat, lon)
    except ApiError as e:
        logger.warning(f"Location lookup failed: {e}")
        return None
    return info.get('displayName') or info.get('city')


def cmd_today(tracker, args):
    schedule = _fetch_schedule(tracker, lat=args.lat, lon=args.lon)
    if args.lat is not None and args.lon is not None:
        place = _describe_location(tracker, args.lat, args.lon)
        if place:
            print(f"Lokasi: {place}")
    if schedule:
        print(f"{schedule['greeting']}. {schedule['date']}")
        print(schedule['status'])
        print()
        for prayer in schedule['prayers']:
            attendance = tracker.get_prayer_attendance(prayer['name'])
            mark = '[x]' if attendance else '[ ]'
            flag = '  <- berikutnya' if prayer.get('isNext') else ''
            detail = f" (pukul {attendance['customTime']})" if attendance and attendance.get('customTime') else ''
            print(f"{mark} {prayer['localName']:<8} {prayer['time'] or '--:--'}{detail}{flag}")
    else:
        print("Prayer times are unavailable; showing today's records only.")
        for name in PRAYER_NAMES:
            print(f"{'[x]' if tracker.get_prayer_attendance(name) else '[ ]'} {name}")
    print(f"\nSync: {tracker.sync_status}")
    return 0


def cmd_mark(tracker, args):
    name = normalize_prayer_name(args.prayer)
    if not name:
        print(f"Unknown prayer '{args.prayer}'. Use one of: {', '.join(PRAYER_NAMES)}.", file=sys.stderr)
        return 2
    if args.date:
        try:
            args.date = parse_record_date(args.date)
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 2

    if not args.custom_time:
        try:
            tracker.mark_prayer_completed(name, date=args.date)
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 2
        print(f"{name} marked as attended.")
        return 0

    scheduled_time = None
    schedule = _fetch_schedule(tracker, date=args.date, lat=args.lat, lon=args.lon)
    if schedule:
        prayers = [p for p in schedule['prayers'] if p.get('time')]
        time_range = get_valid_prayer_time_range(name, prayers)
        if time_range and not is_valid_prayer_time(args.custom_time, name, prayers):
            print(f"{args.custom_time} is outside the {name} window ({time_range['min']} - {time_range['max']}).", file=sys.stderr)
            return 2
        scheduled_time = time_range['min'] if time_range else None

    try:
        record = tracker.mark_prayer_attended_with_custom_time(name, args.custom_time, date=args.date, scheduled_time=scheduled_time)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2
    print(f"{name} marked as attended at {record.get('customTime')} ({record.get('timeStatus')}).")
    return 0


def cmd_unmark(tracker, args):
    try:
        removed = tracker.unmark_prayer(args.prayer, date=args.date)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2
    if removed:
        print(f"{args.prayer} unmarked.")
        return 0
    print(f"{args.prayer} was not marked.")
    return 1


def cmd_stats(tracker, args):
    stats = tracker.get_attendance_stats(args.period)
    timing = stats.get('timingAnalysis', {})
    print(f"Last {stats.get('period', args.period)} days")
    print(f"  Prayers recorded: {stats.get('totalRecords', 0)} over {stats.get('uniqueDays', 0)} day(s)")
    print(f"  Completion rate:  {stats.get('completionRate', 0)}%")
    print(f"  Current streak:   {stats.get('currentStreak', 0)} day(s)")
    for name, count in sorted((stats.get('statsByPrayer') or {}).items()):
        print(f"    {name:<8} {count}")
    print(f"  Early: {timing.get('early', 0)}  Late: {timing.get('late', 0)}  Average delay: {timing.get('averageDelay', 0)} min")
    return 0


def cmd_sync(tracker, args):
    if not tracker.is_authenticated:
        print("Sign in first: pass --token or set AWWAL_ID_TOKEN.", file=sys.stderr)
        return 1
    if tracker.sync_to_database():
        result = tracker.sync.last_result or {}
        print(result.get('message', 'Nothing to sync.'))
        return 0
    print("Sync failed; local records are kept and will be retried.", file=sys.stderr)
    return 1


def cmd_status(tracker, args):
    print(f"Signed in as: {tracker.user.get('email') if tracker.user else 'anonymous'}")
    print(f"Sync status:  {tracker.sync_status}")
    print(f"Records:      {len(tracker.records)}")
    if tracker.is_authenticated:
        try:
            status = tracker.api.get_sync_status()
            print(f"Server total: {status.get('totalRecords', 0)}")
        except ApiError as e:
            print(f"Server status unavailable: {e}", file=sys.stderr)
    return 0


COMMANDS = {
    'today': cmd_today,
    'mark': cmd_mark,
    'unmark': cmd_unmark,
    'stats': cmd_stats,
    'sync': cmd_sync,
    'status': cmd_status,
}


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_basic_logging(args.verbose)
    tracker = build_tracker(args)
    return COMMANDS[args.command](tracker, args)


if __name__ == '__main__':
    sys.exit(main())
