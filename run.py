import uvicorn
from kotoquiz.main import app

if __name__ == "__main__":
    uvicorn.run(
        "kotoquiz.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,  # 开发模式
    )
