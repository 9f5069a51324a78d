import uvicorn

from sales_indicators.config.settings import settings

if __name__ == "__main__":
    uvicorn.run(
        "sales_indicators.api.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG
    )
