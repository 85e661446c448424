import os

# ETL Configuration
class Config:
    # Registered state of the seller; buyers in other states are interstate supplies
    SELLER_STATE_CODE = os.environ.get("GST_SELLER_STATE_CODE", "27")
    # Fallback when an address or state name cannot be resolved
    DEFAULT_JURISDICTION = os.environ.get("GST_DEFAULT_JURISDICTION", "27")

    DEFAULT_GST_RATE = os.environ.get("GST_DEFAULT_RATE", "18")
    BANK_GST_RATE = os.environ.get("GST_BANK_RATE", "18")
    BANK_HSN_CODE = os.environ.get("GST_BANK_HSN_CODE", "999799")  # Financial services
    BANK_PLATFORM_NAME = "Bank Statement"

    GSTIN = os.environ.get("GST_GSTIN", "YOUR_GSTIN_HERE")
    COMPANY_NAME = os.environ.get("GST_COMPANY_NAME", "Your Company Name")
    VOUCHER_PREFIX = os.environ.get("GST_VOUCHER_PREFIX", "ECOM")
    UNIT_OF_MEASURE = "NOS"

    OUTPUT_FOLDER = os.environ.get("OUTPUT_FOLDER", "outputs")
    LOG_FILE = os.environ.get("LOG_FILE", "server.log")
    ALLOWED_EXTENSIONS = {'.csv', '.xlsx', '.xls', '.json', '.pdf'}
