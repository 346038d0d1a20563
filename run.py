#!/usr/bin/env python3
"""
Entry point for running the treenode web application.
"""

import os
import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "treenode.web.app:app",
        host=os.getenv("TREENODE_HOST", "0.0.0.0"),
        port=int(os.getenv("TREENODE_PORT", "8000")),
        reload=False
    )
