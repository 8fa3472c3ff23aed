"""DOM selectors for the Frontline Education substitute portal.

If Frontline changes its UI, update these and check with `subwatch once`.
"""

LOGIN = {
    "username": 'input[placeholder="ID or Username"], input[name="username"]',
    "password": 'input[placeholder="PIN or Password"], input[type="password"]',
    "submit": 'button:has-text("Sign In")',
}

# "Important Notifications" dialog that may appear after login.
POPUP = {
    "dialog": ".ui-dialog",
    "dismiss": '.ui-dialog-buttonset button:has-text("Dismiss")',
}

NAVIGATION = {
    "available_tab": "#availableJobsTab",
    "available_panel": "#availableJobs",
}

# Each job is a tbody with a summary row and one detail row per day.
JOBS = {
    "bodies": "#availableJobs tbody.job",
    "no_data": "tr.noData",
    "summary_row": "tr.summary",
    "teacher": ".name",
    "position": ".title",
    "report_to": ".reportToLocation",
    "conf_num": ".confNum",
    "detail_row": "tr.detail",
    "date": ".itemDate",
    "start_time": ".startTime",
    "end_time": ".endTime",
    "duration": ".durationName",
    "location": ".locationName",
}

BOOKING = {
    "accept": 'a.acceptButton, button.acceptButton, a:has-text("Accept"), button:has-text("Accept")',
    "confirm": '.ui-dialog-buttonset button:has-text("Accept"), .ui-dialog-buttonset button:has-text("OK"), .ui-dialog-buttonset button:has-text("Yes")',
    "success": '.ui-dialog:has-text("successfully"), .ui-dialog:has-text("Confirmation Number"), .notification:has-text("accepted")',
    "unavailable": '.ui-dialog:has-text("no longer available"), .ui-dialog:has-text("already been filled"), .notification:has-text("no longer available")',
}
