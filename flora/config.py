import os

# Melbourne metro postcodes served by the florist network.
MELBOURNE_POSTCODES = (
    # CBD
    "3000", "3001", "3002", "3003", "3004", "3005", "3006", "3008",
    # inner
    "3011", "3031", "3032", "3051", "3052", "3053", "3054", "3055", "3056", "3057",
    "3065", "3066", "3067", "3068", "3070", "3071", "3078", "3079", "3080", "3081",
    "3121", "3122", "3123", "3124", "3125", "3126", "3127", "3128", "3129", "3141",
    "3142", "3143", "3144", "3145", "3146", "3147", "3161", "3162", "3163", "3181",
    "3182", "3183", "3184", "3185", "3186", "3187", "3188", "3189",
    # outer suburbs
    "3018", "3019", "3020", "3021", "3022", "3023", "3024", "3025", "3030", "3033",
    "3034", "3047", "3131", "3132", "3133", "3134", "3135", "3136", "3137", "3138", "3139",
    "3148", "3149", "3150", "3151", "3152", "3153", "3154", "3155", "3156", "3165",
    "3166", "3167", "3168", "3169", "3170", "3171", "3172", "3173", "3174", "3175",
    "3176", "3177", "3178", "3179", "3190", "3191", "3192", "3193", "3194", "3195",
    "3196", "3197", "3198", "3199",
)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw not in (None, "") else default


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    ENV = os.getenv("FLASK_ENV", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")

    # pricing
    TAX_RATE = float(os.environ.get("TAX_RATE", "0.08"))
    CURRENCY = os.environ.get("CURRENCY", "AUD")
    COUNTRY = "Australia"

    # delivery tiers, minor units
    DELIVERY_FEES = {
        "standard": _env_int("STANDARD_DELIVERY_CENTS", 899),
        "express": _env_int("EXPRESS_DELIVERY_CENTS", 1599),
    }
    DELIVERY_ESTIMATES = {
        "standard": "2-4 business days",
        "express": "Same day or next business day",
    }
    SERVICE_AREA = {
        "name": "Melbourne Metro Area",
        "description": "We deliver throughout Greater Melbourne",
    }
    SERVICE_STATE = "VIC"
    VALID_POSTCODES = MELBOURNE_POSTCODES

    @staticmethod
    def init_app(app):
        if app.config.get("SQLALCHEMY_DATABASE_URI"):
            return
        if os.getenv("SQLALCHEMY_DATABASE_URI"):
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("SQLALCHEMY_DATABASE_URI")
        elif os.getenv("DATABASE_URL"):
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")
        else:
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'flora.db')}"
