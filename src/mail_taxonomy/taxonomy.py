"""Base taxonomy and business-type extensions.

Objective:
    Declare the folder taxonomy every tenant starts from and the per-vertical
    extensions layered on top of it. This module is data only; merging and
    validation live in :mod:`src.mail_taxonomy.schema`.

Structure:
    - A category is ``{"name", "color", "sub"}``; ``sub`` holds subfolder
      names or nested ``{"name", "sub"}`` dicts.
    - An extension may declare:
        - ``overrides``: replace ``sub`` / ``color`` of an existing category
        - ``extend``: append subfolders to an existing category
        - ``renames``: rename an existing top-level category
        - ``additions``: new top-level categories
        - ``provisioning_order``: top-level creation order
    - Team-member and supplier folders are never declared here; they are
      injected under ``MANAGER`` and ``SUPPLIERS`` at resolve time.
"""

BASE_PROVISIONING_ORDER = [
    "BANKING",
    "SALES",
    "GOOGLE REVIEW",
    "MANAGER",
    "SUPPLIERS",
    "SUPPORT",
    "URGENT",
    "MISC",
    "PHONE",
    "PROMO",
    "RECRUITMENT",
    "SOCIALMEDIA",
]

BASE_CATEGORIES = [
    {
        "name": "BANKING",
        "color": "#16a766",
        "sub": [
            "BankAlert",
            {"name": "e-Transfer", "sub": ["Transfer Sent", "Transfer Received"]},
            "Invoice",
            "Payment Confirmation",
            {"name": "Receipts", "sub": ["Payment Received", "Payment Sent"]},
            "Refund",
        ],
    },
    {
        "name": "FORMSUB",
        "color": "#0b804b",
        "sub": ["New Submission", "Work Order Forms"],
    },
    # Single category: the classifier has no review subcategories.
    {"name": "GOOGLE REVIEW", "color": "#fad165", "sub": []},
    {"name": "MANAGER", "color": "#ffad47", "sub": ["Unassigned"]},
    {
        "name": "SALES",
        "color": "#16a766",
        "sub": ["Quotes", "Consultations", "Follow-ups"],
    },
    {"name": "SUPPLIERS", "color": "#ffad47", "sub": []},
    {
        "name": "SUPPORT",
        "color": "#4a86e8",
        "sub": ["Appointment Scheduling", "General", "Technical Support"],
    },
    {
        "name": "URGENT",
        "color": "#fb4c2f",
        "sub": ["Emergency Repairs", "Safety Issues", "System Outages", "Other"],
    },
    {"name": "MISC", "color": "#999999", "sub": ["General", "Personal"]},
    {"name": "PHONE", "color": "#6d9eeb", "sub": ["Incoming Calls", "Voicemails"]},
    {"name": "PROMO", "color": "#43d692", "sub": ["Social Media", "Special Offers"]},
    {
        "name": "RECRUITMENT",
        "color": "#e07798",
        "sub": ["Job Applications", "Interviews", "New Hires"],
    },
    {
        "name": "SOCIALMEDIA",
        "color": "#ffad47",
        "sub": ["Facebook", "Instagram", "Google My Business", "LinkedIn"],
    },
]

POOLS_SPAS_EXTENSION = {
    "business_type": "Pools & Spas",
    "overrides": {
        "FORMSUB": {
            "sub": ["New Submission", "Work Order Forms", "Service Requests", "Quote Requests"],
        },
        "SALES": {
            "sub": ["New Spa Sales", "Accessory Sales", "Consultations", "Quote Requests"],
        },
        "SUPPORT": {
            "sub": [
                "Appointment Scheduling",
                "General",
                "Technical Support",
                "Parts And Chemicals",
            ],
        },
        "URGENT": {
            "sub": ["Emergency Repairs", "Leak Emergencies", "Power Outages", "Other"],
        },
        "MANAGER": {"sub": ["Unassigned"]},
    },
    "provisioning_order": [
        "BANKING",
        "SALES",
        "SUPPORT",
        "MANAGER",
        "SUPPLIERS",
        "PHONE",
        "URGENT",
        "SOCIALMEDIA",
        "GOOGLE REVIEW",
        "FORMSUB",
        "RECRUITMENT",
        "PROMO",
        "MISC",
    ],
}

HVAC_EXTENSION = {
    "business_type": "HVAC",
    "overrides": {
        "BANKING": {
            "sub": [
                "Invoices",
                "Receipts",
                "Refunds",
                "Payment Confirmations",
                "Bank Alerts",
                {"name": "e-Transfer", "sub": ["From Business", "To Business"]},
            ],
        },
        "FORMSUB": {"sub": ["New Submissions", "Estimate Requests", "Maintenance Signup"]},
        "MANAGER": {"sub": ["Unassigned", "Escalations", "Dispatch"]},
        "SALES": {
            "sub": ["New System Quotes", "Consultations", "Maintenance Plans", "Ductless Quotes"],
        },
        "SUPPLIERS": {"sub": ["Lennox", "Carrier", "Trane", "Goodman", "Honeywell"]},
        "SUPPORT": {
            "sub": [
                "Technical Support",
                "Parts & Filters",
                "Appointment Scheduling",
                "General Inquiries",
            ],
        },
        "URGENT": {"sub": ["No Heat", "No Cooling", "Carbon Monoxide Alert", "Water Leak"]},
        "PHONE": {"sub": ["Incoming Calls", "Voicemails", "After Hours Calls"]},
        "PROMO": {"sub": ["Seasonal Promotions", "Financing Offers", "Email Campaigns"]},
        "RECRUITMENT": {
            "sub": ["Job Applications", "Interview Scheduling", "Technician Hiring"],
        },
        "SOCIALMEDIA": {"sub": ["Facebook", "Instagram", "Google My Business"]},
        "MISC": {"sub": ["General", "Archive", "Internal Notes"]},
    },
    "additions": [
        {
            "name": "SERVICE",
            "color": "#4a86e8",
            "sub": [
                {
                    "name": "Emergency Heating",
                    "sub": ["Furnace No Heat", "Boiler Failure", "Gas Leak Concern"],
                },
                {
                    "name": "Emergency Cooling",
                    "sub": ["AC Not Cooling", "Compressor Failure", "Thermostat Malfunction"],
                },
                {"name": "Seasonal Maintenance", "sub": ["Spring Tune-up", "Fall Inspection"]},
                {
                    "name": "New Installations",
                    "sub": ["HVAC System Install", "Ductless Mini Split", "Heat Pump"],
                },
                {
                    "name": "Indoor Air Quality",
                    "sub": ["Filter Replacement", "Air Purifier Install", "Humidity Control"],
                },
                {"name": "Duct Cleaning", "sub": ["Residential", "Commercial"]},
            ],
        },
        {
            "name": "WARRANTY",
            "color": "#a479e2",
            "sub": ["Claims", "Pending Review", "Approved", "Denied", "Parts Replacement"],
        },
    ],
}

ELECTRICIAN_EXTENSION = {
    "business_type": "Electrician",
    "overrides": {
        "BANKING": {
            "sub": [
                "Invoices",
                "Receipts",
                "Refunds",
                "Payment Confirmations",
                "Bank Alerts",
                {"name": "e-Transfer", "sub": ["From Business", "To Business"]},
            ],
        },
        "FORMSUB": {"sub": ["New Submission", "Estimate Request", "Project Inquiry"]},
        "MANAGER": {"sub": ["Unassigned", "Dispatch", "Escalations"]},
        "SALES": {
            "sub": [
                "New Project Quotes",
                "Residential Estimates",
                "Commercial Bids",
                "Lighting Upgrades",
            ],
        },
        "SUPPLIERS": {
            "sub": ["Home Depot Pro", "Graybar", "Wesco", "Rexel", "Ideal Industries"],
        },
        "SUPPORT": {
            "sub": [
                "Appointment Scheduling",
                "Estimate Follow-up",
                "Technical Support",
                "General",
            ],
        },
        "URGENT": {
            "sub": ["Power Loss", "Burning Smell", "Sparking Outlet", "Tripped Breaker"],
        },
        "PHONE": {
            "sub": ["Incoming Calls", "Outgoing Calls", "Voicemails", "After Hours Calls"],
        },
        "PROMO": {"sub": ["Seasonal Offers", "Email Campaigns", "Social Media Promotions"]},
        "RECRUITMENT": {
            "sub": [
                "Job Applications",
                "Interview Scheduling",
                "Electrician Hiring",
                "Apprentice Programs",
            ],
        },
        "MISC": {"sub": ["General", "Archive", "Personal"]},
    },
    "additions": [
        {
            "name": "SERVICE",
            "color": "#4a86e8",
            "sub": [
                {
                    "name": "Emergency Repairs",
                    "sub": ["Power Outage", "Circuit Failure", "Breaker Trip", "Burning Smell"],
                },
                {
                    "name": "Wiring",
                    "sub": [
                        "New Construction",
                        "Rewiring Projects",
                        "Panel Upgrades",
                        "Subpanel Installs",
                    ],
                },
                {
                    "name": "Lighting",
                    "sub": [
                        "Interior Lighting",
                        "Exterior Lighting",
                        "LED Upgrades",
                        "Landscape Lighting",
                    ],
                },
                {
                    "name": "Safety Inspections",
                    "sub": ["Code Compliance", "Insurance Inspections", "Fire Risk Checks"],
                },
                {
                    "name": "Installations",
                    "sub": ["Ceiling Fans", "EV Chargers", "Smart Home Systems", "Generators"],
                },
            ],
        },
    ],
}

GENERAL_CONTRACTOR_EXTENSION = {
    "business_type": "General Contractor",
    "overrides": {
        "BANKING": {
            "sub": [
                "Invoice",
                "Receipts",
                "Refund",
                "Payment Confirmation",
                "e-Transfer",
                "Bank Alert",
            ],
        },
        "FORMSUB": {
            "sub": [
                "New Submission",
                "Work Order Forms",
                "Estimate Requests",
                "Permit Applications",
            ],
        },
        "MANAGER": {
            "sub": ["Unassigned", "Escalations", "Team Assignments", "Project Oversight"],
        },
        "SALES": {"sub": ["New Leads", "Quote Follow-ups", "Project Bids", "Consultations"]},
        "SUPPLIERS": {
            "sub": [
                "Building Materials",
                "Concrete Supplier",
                "Electrical Supplies",
                "Plumbing Supplies",
            ],
        },
    },
    "extend": {
        "SUPPORT": ["Warranty Requests"],
    },
    "additions": [
        {
            "name": "PROJECTS",
            "color": "#a479e2",
            "sub": ["Active Projects", "Change Orders", "Inspections", "Completed"],
        },
        {
            "name": "PERMITS",
            "color": "#8e63ce",
            "sub": ["Applications", "Approvals", "Inspections"],
        },
    ],
}

# Several business type labels share one extension.
BUSINESS_EXTENSIONS = {
    "Pools & Spas": POOLS_SPAS_EXTENSION,
    "Hot tub & Spa": POOLS_SPAS_EXTENSION,
    "Sauna & Icebath": POOLS_SPAS_EXTENSION,
    "Pools": POOLS_SPAS_EXTENSION,
    "HVAC": HVAC_EXTENSION,
    "Plumber": HVAC_EXTENSION,
    "Electrician": ELECTRICIAN_EXTENSION,
    "General Contractor": GENERAL_CONTRACTOR_EXTENSION,
    "General Construction": GENERAL_CONTRACTOR_EXTENSION,
}


def available_business_types() -> list[str]:
    """Return the business type keys that have an extension."""
    return sorted(BUSINESS_EXTENSIONS)
