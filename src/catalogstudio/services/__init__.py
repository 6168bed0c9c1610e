"""Remote collaborators: product lookup, AI vision, catalog upload.

Exports
-------
ProductLookup, ImageDescriber, ImageGenerator, CatalogUploader
    Protocols the pipeline depends on.
VtexProductLookup
    Storefront search API lookup.
GeminiVisionClient
    AI describe + generate.
VtexCatalogUploader
    SKU image upload.
"""

from .base import CatalogUploader, ImageDescriber, ImageGenerator, ProductLookup
from .catalog import VtexProductLookup, extract_product_id
from .upload import VtexCatalogUploader
from .vision import GeminiVisionClient

__all__ = [
    "CatalogUploader",
    "GeminiVisionClient",
    "ImageDescriber",
    "ImageGenerator",
    "ProductLookup",
    "VtexCatalogUploader",
    "VtexProductLookup",
    "extract_product_id",
]
