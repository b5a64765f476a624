"""
CloudMart Functions — Azure Functions Entry Point
==================================================

What:  Exposes the FastAPI application as an HTTP-triggered Function App.
How:   AsgiFunctionApp forwards every request to cloudmart.main:app.
       host.json sets routePrefix to "" because the routers already carry
       the "/api" prefix.

Local runs without the Functions host:
    uvicorn cloudmart.main:app --reload
"""

import azure.functions as func

from cloudmart.main import app as fastapi_app

app = func.AsgiFunctionApp(app=fastapi_app, http_auth_level=func.AuthLevel.FUNCTION)
