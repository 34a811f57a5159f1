"""
Portal Services.

Session handling, the login/2FA flows, the leave-request lifecycle and
the view-model mapping of backend payloads.
"""
