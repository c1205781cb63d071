"""crl/deployment — Serving CRL-Core engines over HTTP.

The server lives in ``crl.deployment.server`` and needs the ``server``
extra (``pip install crl-core[server]``).
"""
