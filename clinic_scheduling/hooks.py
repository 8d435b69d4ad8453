app_name = "clinic_scheduling"
app_title = "Clinic Scheduling"
app_publisher = "Clinic Scheduling Contributors"
app_description = "Scheduling and availability engine for clinics: doctor hours, room and equipment bookings, recurring schedules and bookable slots"
app_email = "dev@clinic-scheduling.local"
app_license = "mit"

# Apps
# ------------------

# required_apps = []

# Installation
# ------------

# before_install = "clinic_scheduling.install.before_install"
# after_install = "clinic_scheduling.install.after_install"

# Permissions
# -----------
# Permissions evaluated in scripted ways

# permission_query_conditions = {
# 	"Clinic Schedule": "clinic_scheduling.permissions.get_permission_query_conditions",
# }

# Document Events
# ---------------
# Hook on document methods and events

# doc_events = {
# 	"Clinic Appointment": {
# 		"on_update": "method",
# 	}
# }

# Overriding Methods
# ------------------------------
#
# override_whitelisted_methods = {
# 	"frappe.desk.doctype.event.event.get_events": "clinic_scheduling.event.get_events"
# }

# Site configuration
# ------------------
# Engine settings live under the "clinic_scheduling" key of site_config.json:
#
# "clinic_scheduling": {
# 	"month_end_policy": "clamp",
# 	"max_occurrences": 365,
# 	"appointment_doctype": "Clinic Appointment"
# }
