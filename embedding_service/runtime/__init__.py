"""Runtime state shared across requests: result cache, status tracker,
background job queue and the metrics facade."""
