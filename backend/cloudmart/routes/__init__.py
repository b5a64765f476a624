# Routes package init
"""
CloudMart Functions — API Routes Package
=========================================

What:  HTTP route handlers, one module per storefront resource.

Route Inventory:
    - products.py:  POST   /api/AddProduct
                    GET    /api/GetAllProducts
                    GET    /api/GetProduct/{rowKey}
                    PUT    /api/UpdateProduct/{rowKey}
                    DELETE /api/DeleteProduct/{rowKey}
    - orders.py:    POST   /api/QueueOrder
    - uploads.py:   POST   /api/UploadBlob
    - reviews.py:   POST   /api/WriteToFileShare
    - health.py:    GET    /health

Routes stay THIN: read the body, decode, validate, call the dispatcher
once, render the Outcome.
"""
