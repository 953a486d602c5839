"""Recognition core: store, matcher, enrollment, detection loop, alerts."""
