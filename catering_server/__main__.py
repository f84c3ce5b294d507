"""
本地启动：python -m catering_server
"""

if __name__ == "__main__":
    import uvicorn
    from .app import app
    from .config.settings import settings

    print("Starting catering payments server...")
    uvicorn.run(app, host="127.0.0.1", port=4005, log_level=settings.log_level.lower())
