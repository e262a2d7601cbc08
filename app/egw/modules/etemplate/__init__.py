"""
eTemplate delivery: legacy XML templates rewritten into web-component markup.

Pipeline: loader (resolve path, cache freshness) -> transforms (ordered regex
passes) -> cache write -> HTTP response with ETag/304, gzip and Content-Length.
"""
