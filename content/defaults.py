"""Copy the marketing site ships with before an editor changes anything."""

from typing import NamedTuple


class DefaultEntry(NamedTuple):
    section: str
    key: str
    value: str


DEFAULT_CONTENT = (
    # Hero
    DefaultEntry("hero", "title", "A Lead Generation Powerhouse"),
    DefaultEntry("hero", "subtitle", "Partner for Life"),
    DefaultEntry("hero", "stats_spending", "£28 million"),
    DefaultEntry("hero", "stats_leads", "4.7 million leads"),
    DefaultEntry("hero", "cta_primary", "Talk to a Specialist"),
    DefaultEntry("hero", "cta_secondary", "Explore Our Work"),
    # About
    DefaultEntry("about", "title", "About Click2Leads"),
    DefaultEntry("about", "description", "We are a lead generation company with proven results."),
    # Services
    DefaultEntry("services", "title", "Our Services"),
    DefaultEntry("services", "service_1_title", "SEO Optimization"),
    DefaultEntry("services", "service_1_desc", "Boost your organic search rankings"),
    DefaultEntry("services", "service_2_title", "PPC Advertising"),
    DefaultEntry("services", "service_2_desc", "Targeted paid advertising campaigns"),
    DefaultEntry("services", "service_3_title", "Social Media Marketing"),
    DefaultEntry("services", "service_3_desc", "Engage your audience on social platforms"),
)

BOOTSTRAP_USERNAME = "admin"
BOOTSTRAP_PASSWORD = "admin123"
