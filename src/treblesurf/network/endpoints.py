"""Backend endpoint paths."""

# Authentication
GOOGLE_AUTH = "/api/auth/google"
VALIDATE_SESSION = "/api/auth/validate"
LOGOUT = "/api/auth/logout"
DEV_SESSION = "/api/auth/dev-session"
USER_SESSIONS = "/api/sessions"

# Surf spots
SPOTS = "/api/spots"
LOCATION_INFO = "/api/locationInfo"
CURRENT_CONDITIONS = "/api/currentConditions"
FORECAST = "/api/forecast"

# Buoys
REGION_BUOYS = "/api/regionBuoys"
MULTIPLE_BUOY_DATA = "/api/getMultipleBuoyData"
LAST_24_BUOY_DATA = "/api/getLast24BuoyData"

# Surf reports
TODAY_SPOT_REPORTS = "/api/getTodaySpotReports"
ALL_SPOT_REPORTS = "/api/getAllSpotReports"
REPORT_IMAGE = "/api/getReportImage"
REPORT_VIDEO = "/api/getReportVideo"
GENERATE_VIDEO_VIEW_URL = "/api/generateVideoViewURL"
SUBMIT_SURF_REPORT = "/api/submitSurfReport"
SUBMIT_SURF_REPORT_WITH_S3_IMAGE = "/api/submitSurfReportWithS3Image"
SUBMIT_SURF_REPORT_VALIDATED = "/api/submitSurfReportWithIOSValidation"

# Swell predictions
SWELL_PREDICTION = "/api/swellPrediction"
SWELL_PREDICTION_DYNAMODB = "/api/swellPredictionDynamoDB"
REGION_SWELL_PREDICTION = "/api/regionSwellPrediction"
SWELL_PREDICTION_RANGE = "/api/swellPredictionRange"
RECENT_SWELL_PREDICTIONS = "/api/recentSwellPredictions"

# Media uploads
GENERATE_IMAGE_UPLOAD_URL = "/api/generateImageUploadURL"
GENERATE_VIDEO_UPLOAD_URL = "/api/generateVideoUploadURL"
DELETE_UPLOADED_MEDIA = "/api/deleteUploadedMedia"

# Moderation
SUBMIT_CONTENT_REPORT = "/api/reports/submit"
