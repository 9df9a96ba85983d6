"""Stage orchestration, progress display and SUMMARY rendering."""
