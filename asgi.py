"""
asgi.py -- Builds the Better Demo ASGI app from its two surfaces.

api/main.py owns the FastAPI instance, middleware and the /api/auth routes;
web/routes.py owns the HTML pages. Neither imports the other, so the join
happens here.

Serve with:  uvicorn asgi:app --reload --port 3000
"""

from api.main import app
from web.routes import router as web_router

app.include_router(web_router, tags=["Pages"])
