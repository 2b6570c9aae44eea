from django.dispatch import Signal

# Sent once per document, right after the transaction that moved it into
# AUTHORIZED commits. Keyword arguments: `document`, `auto_create_shipment`.
fiscal_document_authorized = Signal()
