#!/usr/bin/env python3
"""
Quick runner for Bundle Navigator
=================================

Usage:
    python -m bundle_navigator.run
"""

import uvicorn

if __name__ == "__main__":
    print("Starting Bundle Navigator...")
    print("API docs: http://localhost:8000/docs")
    print("Health:   http://localhost:8000/health")
    print()

    uvicorn.run(
        "bundle_navigator.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
