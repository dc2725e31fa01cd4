# awwal/metrics.py

from prometheus_client import Counter, Histogram

# Cache Metrics
CACHE_HITS = Counter('awwal_cache_hits_total', 'Total cache hits', ['cache_type'])
CACHE_MISSES = Counter('awwal_cache_misses_total', 'Total cache misses', ['cache_type'])

# External API Metrics
API_REQUESTS_TOTAL = Counter('awwal_api_requests_total', 'Total external API requests', ['adapter_name', 'endpoint', 'status'])
API_REQUEST_DURATION_SECONDS = Histogram('awwal_api_request_duration_seconds', 'External API request duration in seconds', ['adapter_name', 'endpoint'])

# Attendance Metrics
ATTENDANCE_WRITES_TOTAL = Counter('awwal_attendance_writes_total', 'Attendance records written', ['operation', 'method'])
SYNC_RECORDS_TOTAL = Counter('awwal_sync_records_total', 'Records processed by bulk sync', ['result'])
