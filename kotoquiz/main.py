#!/usr/bin/env python3
"""
KotoQuiz 词汇学习服务 - FastAPI 主应用入口
Description: 提供测验结果提交与自适应选词接口
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kotoquiz.config.settings import settings
from kotoquiz.utils.logger import setup_logging
from kotoquiz.utils.database import init_db
from kotoquiz.api.routes import health, quiz, words

logger = logging.getLogger(__name__)


def _format_validation_errors(exc: RequestValidationError) -> str:
    """把校验错误列表压缩成一行文本：位置: 原因；多条用分号分隔"""
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理
    - 启动时初始化日志与数据库表
    """
    setup_logging()
    logger.info("初始化词汇学习服务...")

    try:
        init_db()
        logger.info("词汇学习服务启动完成")
    except Exception as e:
        logger.error(f"应用启动失败: {e}")
        raise

    yield  # 应用运行期间

    logger.info("词汇学习服务已关闭")


def create_application() -> FastAPI:
    """创建并配置FastAPI应用实例"""

    app = FastAPI(
        title=settings.APP_NAME,
        description="词汇学习后端：记录测验结果并按间隔重复策略选词",
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 路由层的 404/405 也走这里
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail}
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc):
        return JSONResponse(
            status_code=422,
            content={"error": _format_validation_errors(exc)}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        logger.error(f"未处理的异常: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "内部服务器错误"}
        )

    app.include_router(health.router, tags=["健康检查"])
    app.include_router(quiz.router, prefix="/api/v1/app/quiz", tags=["测验结果"])
    app.include_router(words.router, prefix="/api/v1/app/words", tags=["选词"])

    return app


app = create_application()
