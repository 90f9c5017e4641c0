"""Built-in rule table for Dutch household spending.

Definitions use the same shape accepted by :meth:`RuleSet.add`, so they can be
dumped, edited and loaded back through ``--rules`` in the CLI. Category names
match :class:`~spend_analysis.classifier.PlanningCategory`.
"""

from __future__ import annotations

from typing import Any

_REQUIRED = "Required Purchases"
_DISCRETIONARY = "Discretionary Spending"
_SUBSCRIPTIONS = "Subscriptions"
_ASSETS = "Spending but Assets"

DEFAULT_RULES: tuple[dict[str, Any], ...] = (
    # -- Required purchases ---------------------------------------------------
    {
        "id": "groceries_nl",
        "name": "Dutch Grocery Stores",
        "category": _REQUIRED,
        "priority": 95,
        "conditions": {
            "merchantPatterns": [
                r"albert\s*heijn", r"jumbo", r"lidl", r"aldi", r"plus", r"coop",
                r"dirk", r"vomar", r"deen", r"spar", r"ekoplaza", r"marqt",
            ],
            "descriptionPatterns": [r"supermar", r"grocery", r"boodschap"],
        },
    },
    {
        "id": "groceries_general",
        "name": "General Grocery",
        "category": _REQUIRED,
        "priority": 90,
        "conditions": {
            "descriptionPatterns": [r"grocery", r"supermarket", r"food\s*store", r"market"],
            "amountRange": {"min": 10, "max": 300},
        },
    },
    {
        "id": "utilities_energy",
        "name": "Energy Utilities",
        "category": _REQUIRED,
        "priority": 100,
        "conditions": {
            "merchantPatterns": [
                r"eneco", r"vattenfall", r"essent", r"nuon", r"greenchoice",
                r"pure\s*energie", r"vandebron", r"budget\s*energie", r"engie",
            ],
            "descriptionPatterns": [r"electricity", r"gas", r"energie", r"stroom"],
        },
    },
    {
        "id": "utilities_water",
        "name": "Water Utilities",
        "category": _REQUIRED,
        "priority": 100,
        "conditions": {
            "merchantPatterns": [r"waternet", r"vitens", r"pwn", r"evides", r"dunea"],
            "descriptionPatterns": [r"water"],
        },
    },
    {
        "id": "utilities_internet",
        "name": "Internet/Telecom",
        "category": _REQUIRED,
        "priority": 95,
        "conditions": {
            "merchantPatterns": [
                r"ziggo", r"kpn", r"vodafone", r"t-mobile", r"tele2", r"xs4all", r"online\.nl",
            ],
            "descriptionPatterns": [r"internet", r"broadband", r"telecom"],
            "isRecurring": True,
        },
    },
    {
        "id": "rent",
        "name": "Rent/Mortgage",
        "category": _REQUIRED,
        "priority": 100,
        "conditions": {
            "descriptionPatterns": [
                r"rent", r"huur", r"mortgage", r"hypotheek", r"woning", r"verhuur",
            ],
            "dayOfMonth": [1, 2, 3, 28, 29, 30, 31],
            "amountRange": {"min": 400},
        },
    },
    {
        "id": "insurance",
        "name": "Insurance",
        "category": _REQUIRED,
        "priority": 95,
        "conditions": {
            "merchantPatterns": [
                r"achmea", r"aegon", r"asr", r"nn", r"nationale.*nederlanden",
                r"zilveren\s*kruis", r"cz", r"vgz", r"menzis", r"fbto",
            ],
            "descriptionPatterns": [
                r"insurance", r"verzekering", r"zorgverzekering", r"inboedel", r"aansprakelijk",
            ],
            "isRecurring": True,
        },
    },
    # -- Subscriptions --------------------------------------------------------
    {
        "id": "streaming",
        "name": "Streaming Services",
        "category": _SUBSCRIPTIONS,
        "priority": 85,
        "conditions": {
            "merchantPatterns": [
                r"netflix", r"spotify", r"disney", r"hbo", r"videoland",
                r"amazon\s*prime", r"apple\s*(tv|music)", r"youtube\s*premium",
                r"viaplay", r"nlziet", r"discovery",
            ],
            "isRecurring": True,
            "amountRange": {"min": 5, "max": 50},
        },
    },
    {
        "id": "software",
        "name": "Software Subscriptions",
        "category": _SUBSCRIPTIONS,
        "priority": 80,
        "conditions": {
            "merchantPatterns": [
                r"adobe", r"microsoft", r"dropbox", r"google\s*storage",
                r"github", r"slack", r"notion", r"1password", r"lastpass",
            ],
            "descriptionPatterns": [r"subscription", r"monthly", r"license"],
            "isRecurring": True,
        },
    },
    {
        "id": "gym",
        "name": "Gym/Fitness",
        "category": _SUBSCRIPTIONS,
        "priority": 80,
        "conditions": {
            "merchantPatterns": [
                r"basic.*fit", r"fit\s*for\s*free", r"sportcity",
                r"anytime\s*fitness", r"gym", r"fitness",
            ],
            "descriptionPatterns": [r"gym", r"fitness", r"sport"],
            "isRecurring": True,
        },
    },
    # -- Discretionary --------------------------------------------------------
    {
        "id": "dining_restaurants",
        "name": "Restaurants",
        "category": _DISCRETIONARY,
        "priority": 70,
        "conditions": {
            "merchantPatterns": [
                r"restaurant", r"cafe", r"bistro", r"brasserie",
                r"pizzeria", r"sushi", r"burger", r"grill",
            ],
            "descriptionPatterns": [
                r"restaurant", r"dining", r"lunch", r"dinner", r"breakfast", r"brunch",
            ],
            "amountRange": {"min": 15},
        },
    },
    {
        "id": "dining_fast_food",
        "name": "Fast Food",
        "category": _DISCRETIONARY,
        "priority": 65,
        "conditions": {
            "merchantPatterns": [
                r"mcdonald", r"burger\s*king", r"kfc", r"subway", r"domino",
                r"pizza\s*hut", r"new\s*york\s*pizza", r"thuisbezorgd",
                r"uber\s*eats", r"deliveroo",
            ],
            "amountRange": {"min": 5, "max": 50},
        },
    },
    {
        "id": "entertainment",
        "name": "Entertainment",
        "category": _DISCRETIONARY,
        "priority": 60,
        "conditions": {
            "merchantPatterns": [
                r"pathe", r"cinema", r"theater", r"concert", r"ticketmaster", r"museum", r"event",
            ],
            "descriptionPatterns": [r"ticket", r"entertainment", r"show", r"movie"],
        },
    },
    {
        "id": "shopping_clothing",
        "name": "Clothing & Fashion",
        "category": _DISCRETIONARY,
        "priority": 60,
        "conditions": {
            "merchantPatterns": [
                r"h\s*&\s*m", r"zara", r"primark", r"c\s*&\s*a",
                r"hema", r"uniqlo", r"nike", r"adidas",
            ],
            "descriptionPatterns": [r"clothing", r"fashion", r"apparel"],
        },
    },
    # -- Spending but assets --------------------------------------------------
    {
        "id": "electronics",
        "name": "Electronics",
        "category": _ASSETS,
        "priority": 75,
        "conditions": {
            "merchantPatterns": [
                r"mediamarkt", r"coolblue", r"bol\.com", r"apple",
                r"samsung", r"bcc", r"expert", r"paradigit",
            ],
            "descriptionPatterns": [
                r"laptop", r"computer", r"phone", r"tablet",
                r"tv", r"television", r"monitor", r"headphone",
            ],
            "amountRange": {"min": 100},
        },
    },
    {
        "id": "furniture",
        "name": "Furniture & Home",
        "category": _ASSETS,
        "priority": 75,
        "conditions": {
            "merchantPatterns": [
                r"ikea", r"leen\s*bakker", r"kwantum", r"praxis", r"gamma", r"karwei", r"hornbach",
            ],
            "descriptionPatterns": [
                r"furniture", r"meubel", r"desk", r"chair", r"table", r"couch", r"bed", r"mattress",
            ],
            "amountRange": {"min": 50},
        },
    },
    {
        "id": "tools",
        "name": "Tools & Equipment",
        "category": _ASSETS,
        "priority": 70,
        "conditions": {
            "merchantPatterns": [r"bosch", r"makita", r"dewalt", r"toolstation"],
            "descriptionPatterns": [r"tool", r"drill", r"equipment", r"gereedschap"],
            "amountRange": {"min": 30},
        },
    },
)

__all__ = ["DEFAULT_RULES"]
