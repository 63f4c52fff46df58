"""HTTP surface: cron trigger, queue status, upload and indexing status."""
