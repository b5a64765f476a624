# Services package init
"""
CloudMart Functions — Services Layer
=====================================

What:  Request processing between routes (HTTP) and storage backends.

Service Inventory:
    - payload_decoder:   raw body → typed value (JSON, text, multipart file)
    - multipart_reader:  forward-only streaming reader over python-multipart
    - validation:        per-entity rules, upload type/size checks
    - dispatcher:        one storage operation per request → Outcome
    - response_mapper:   Outcome / CloudMartError → HTTP response
"""
