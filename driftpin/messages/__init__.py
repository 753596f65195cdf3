"""
Dropped messages: storage, radius queries, replies and expiry.

Modules:
- lifetime.py: expiry arithmetic and visual decay
- store.py / redis_store.py: SQL and Redis backends
- service.py: operations shared by the HTTP API, jobs and scripts
- router.py: /messages endpoints
- expiry_job.py: periodic purge of expired messages
- samples.py: demo data
"""
