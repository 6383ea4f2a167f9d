# Durable storage key names. Other parts of the web app read these too,
# so they must never be renamed.

AUTH_TOKEN = "karzo_token"
AUTH_USER = "karzo_user"
LANGUAGE = "karzo_language"

JOB_ID = "interview_job_id"
JOB_TITLE = "interview_job_title"
COMPANY = "interview_company"
JOB_REQUIREMENTS = "interview_job_requirements"
JOB_OFFER_QUESTIONS = "job_offer_questions"

CANDIDATE_SUMMARY = "candidate_summary"
GUEST_CANDIDATE_NAME = "guest_candidate_name"
GUEST_INTERVIEW_ID = "guest_interview_id"
APPLICATION_ID = "application_id"
INTERVIEW_ID = "interview_id"
CONVERSATION_ID = "debug_conversation_id"

COMPANY_SIZE = "company_size"
COMPANY_SECTOR = "company_sector"
COMPANY_ABOUT = "company_about"
COMPANY_WEBSITE = "company_website"

EXTERNAL_COMPANY_NAME = "external_company_name"
EXTERNAL_COMPANY_EMAIL = "external_company_email"
EXTERNAL_COMPANY_SIZE = "external_company_size"
EXTERNAL_COMPANY_SECTOR = "external_company_sector"
EXTERNAL_COMPANY_ABOUT = "external_company_about"
EXTERNAL_COMPANY_WEBSITE = "external_company_website"

TTS_TEMPERATURE = "tts_temperature"
TTS_STABILITY = "tts_stability"
TTS_SPEED = "tts_speed"
TTS_SIMILARITY_BOOST = "tts_similarity_boost"
