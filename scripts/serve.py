#!/usr/bin/env python3
"""
scripts/serve.py
================
Start the CRL-Core server.

Usage:
    python scripts/serve.py --host 0.0.0.0 --port 8000 --reload
    python scripts/serve.py --profile stable --policy-size 16 --seed 7
"""
import argparse
import logging
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))


def main():
    parser = argparse.ArgumentParser(description="CRL-Core Server")
    parser.add_argument("--host",        default="0.0.0.0", help="Bind host")
    parser.add_argument("--port",        default=8000, type=int, help="Bind port")
    parser.add_argument("--reload",      action="store_true", help="Hot reload")
    parser.add_argument("--profile",     default="balanced", choices=["balanced", "stable", "plastic"])
    parser.add_argument("--policy-size", default=10, type=int, help="Continual policy vector length")
    parser.add_argument("--seed",        default=None, type=int, help="Seed for both engines")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    print(f"Starting CRL-Core server on {args.host}:{args.port}")
    print(f"Profile: {args.profile}")

    try:
        from crl.continual.learner import ContinualLearner
        from crl.core.config import CRLConfig
        from crl.deployment.server import routes
        from crl.deployment.server.app import serve
        from crl.exploration.engine import ExplorationEngine
    except ImportError:
        print("Server requires: pip install crl-core[server]")
        sys.exit(1)

    cfg = CRLConfig.for_profile(args.profile)
    cfg.exploration.seed = args.seed
    cfg.continual.seed = args.seed
    routes.configure(
        engine=ExplorationEngine(cfg.exploration),
        learner=ContinualLearner(args.policy_size, cfg.continual),
    )
    if args.reload and args.profile != "balanced":
        print("Note: --reload re-imports the app, which serves the default profile")
    serve(host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
