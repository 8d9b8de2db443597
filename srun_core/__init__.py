"""
srun_core: SRun captive portal login agent
===========================================
Architecture: main thread runs bootstrap + login loop, then daemon threads
run the periodic tasks. One lock serializes login/logout.

  constants.py    → Version, portal paths, timings, exit codes
  config.py       → Logging, AgentConfig, config file load
  errors.py       → Error taxonomy
  http_client.py  → HTTP session with retry/pooling + source-address binding
  protocol.py     → JSONP unwrap, error schema
  encoder.py      → Credential encoder contract + loader
  portal.py       → PortalClient (status, challenge, login, logout, keep-alive)
  interfaces.py   → InterfaceResolver (psutil inventory, interface restriction)
  outbound.py     → OutboundIpResolver (portal report → socket probe)
  handler.py      → Online handler launcher
  state.py        → AgentState (phase + counters)
  orchestrator.py → Authenticator (phases A/B/C)
  runner.py       → main()
"""
