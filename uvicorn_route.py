#!/usr/bin/env python3
import uvicorn
from loanly.app import app
from loanly.configs import OPTIONS

if __name__ == "__main__":
    print(f"Starting uvicorn server on port {OPTIONS['port']}...")
    uvicorn.run(app, host=OPTIONS['host'], port=OPTIONS['port'], log_level=OPTIONS['log_level'])
