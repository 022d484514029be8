"""Linear Road input-event injector: config, injector, sinks and the feed driver."""
