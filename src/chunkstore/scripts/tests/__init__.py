# Having this makes debugging better.
