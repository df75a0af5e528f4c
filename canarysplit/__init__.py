"""Replica-ratio canary split tooling.

Companion package for the myapp canary walkthrough. It does not sit in the
request path; it lets the walkthrough's claims be checked:
 - manifest loading and selector/port consistency checks
 - the backend pool a Service selects and its expected traffic split
 - a uniform-random simulation of the orchestrator's proxy
 - sampling a live entry point and tallying responses per version
 - building the responder images and editing manifests for promote/rollback
"""
