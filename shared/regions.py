"""
Indian states / union territories and their districts, with address parsing.

Used to tag ambulance requests and hospitals with a state so that state admins
only see traffic from their own region.

Each entry contains:
  - name: Official state or union territory name
  - districts: Districts recognised when parsing free-text addresses
"""

import re
from typing import Optional, Tuple

STATES_DISTRICTS = [
    {"name": "Andhra Pradesh", "districts": [
        "Anantapur", "Chittoor", "East Godavari", "Guntur", "Krishna", "Kurnool",
        "Nellore", "Prakasam", "Srikakulam", "Visakhapatnam", "Vizianagaram",
        "West Godavari", "Kadapa", "Tirupati",
    ]},
    {"name": "Arunachal Pradesh", "districts": ["Tawang", "Papum Pare", "Changlang", "Lohit"]},
    {"name": "Assam", "districts": ["Kamrup", "Dibrugarh", "Jorhat", "Nagaon", "Cachar", "Sonitpur"]},
    {"name": "Bihar", "districts": ["Patna", "Gaya", "Bhagalpur", "Muzaffarpur", "Darbhanga", "Purnia"]},
    {"name": "Chhattisgarh", "districts": ["Raipur", "Bilaspur", "Durg", "Korba", "Bastar"]},
    {"name": "Goa", "districts": ["North Goa", "South Goa"]},
    {"name": "Gujarat", "districts": [
        "Ahmedabad", "Surat", "Vadodara", "Rajkot", "Bhavnagar", "Jamnagar", "Gandhinagar", "Kutch",
    ]},
    {"name": "Haryana", "districts": ["Gurugram", "Faridabad", "Panipat", "Ambala", "Hisar", "Rohtak", "Karnal"]},
    {"name": "Himachal Pradesh", "districts": ["Shimla", "Kangra", "Mandi", "Kullu", "Solan"]},
    {"name": "Jharkhand", "districts": ["Ranchi", "Dhanbad", "Bokaro", "Jamshedpur", "Hazaribagh"]},
    {"name": "Karnataka", "districts": [
        "Bengaluru Urban", "Bengaluru Rural", "Mysuru", "Mangaluru", "Dakshina Kannada",
        "Belagavi", "Hubballi", "Dharwad", "Kalaburagi", "Shivamogga", "Udupi", "Tumakuru",
    ]},
    {"name": "Kerala", "districts": [
        "Thiruvananthapuram", "Kollam", "Pathanamthitta", "Alappuzha", "Kottayam", "Idukki",
        "Ernakulam", "Thrissur", "Palakkad", "Malappuram", "Kozhikode", "Wayanad", "Kannur",
        "Kasaragod",
    ]},
    {"name": "Madhya Pradesh", "districts": ["Bhopal", "Indore", "Gwalior", "Jabalpur", "Ujjain", "Sagar"]},
    {"name": "Maharashtra", "districts": [
        "Mumbai", "Mumbai Suburban", "Pune", "Nagpur", "Nashik", "Thane", "Aurangabad",
        "Kolhapur", "Solapur", "Satara", "Ratnagiri",
    ]},
    {"name": "Manipur", "districts": ["Imphal East", "Imphal West", "Thoubal", "Churachandpur"]},
    {"name": "Meghalaya", "districts": ["East Khasi Hills", "West Garo Hills", "Ri Bhoi"]},
    {"name": "Mizoram", "districts": ["Aizawl", "Lunglei", "Champhai"]},
    {"name": "Nagaland", "districts": ["Kohima", "Dimapur", "Mokokchung"]},
    {"name": "Odisha", "districts": ["Khordha", "Cuttack", "Puri", "Ganjam", "Sambalpur", "Balasore"]},
    {"name": "Punjab", "districts": ["Amritsar", "Ludhiana", "Jalandhar", "Patiala", "Bathinda", "Mohali"]},
    {"name": "Rajasthan", "districts": ["Jaipur", "Jodhpur", "Udaipur", "Kota", "Ajmer", "Bikaner"]},
    {"name": "Sikkim", "districts": ["Gangtok", "Namchi", "Mangan"]},
    {"name": "Tamil Nadu", "districts": [
        "Chennai", "Coimbatore", "Madurai", "Tiruchirappalli", "Salem", "Tirunelveli",
        "Vellore", "Erode", "Thanjavur", "Kanyakumari", "Tiruppur", "Chengalpattu",
    ]},
    {"name": "Telangana", "districts": ["Hyderabad", "Rangareddy", "Warangal", "Karimnagar", "Nizamabad", "Khammam"]},
    {"name": "Tripura", "districts": ["West Tripura", "South Tripura", "Dhalai"]},
    {"name": "Uttar Pradesh", "districts": [
        "Lucknow", "Kanpur", "Agra", "Varanasi", "Prayagraj", "Ghaziabad", "Noida",
        "Gautam Buddha Nagar", "Meerut", "Gorakhpur", "Bareilly",
    ]},
    {"name": "Uttarakhand", "districts": ["Dehradun", "Haridwar", "Nainital", "Udham Singh Nagar"]},
    {"name": "West Bengal", "districts": ["Kolkata", "Howrah", "Darjeeling", "Hooghly", "Nadia", "Bardhaman"]},
    {"name": "Andaman and Nicobar Islands", "districts": ["South Andaman", "Nicobar"]},
    {"name": "Chandigarh", "districts": []},
    {"name": "Dadra and Nagar Haveli and Daman and Diu", "districts": ["Daman", "Diu", "Dadra and Nagar Haveli"]},
    {"name": "Delhi", "districts": [
        "New Delhi", "Central Delhi", "North Delhi", "South Delhi", "East Delhi", "West Delhi",
    ]},
    {"name": "Jammu and Kashmir", "districts": ["Srinagar", "Jammu", "Anantnag", "Baramulla"]},
    {"name": "Ladakh", "districts": ["Leh", "Kargil"]},
    {"name": "Lakshadweep", "districts": []},
    {"name": "Puducherry", "districts": ["Puducherry", "Karaikal", "Mahe", "Yanam"]},
]

_STATE_LOOKUP = {s["name"].lower(): s["name"] for s in STATES_DISTRICTS}
_DISTRICT_LOOKUP = {
    d.lower(): d for s in STATES_DISTRICTS for d in s["districts"]
}

_LAT_LNG_RE = re.compile(r"^\s*-?\d+(?:\.\d+)?\s*,\s*-?\d+(?:\.\d+)?\s*$")


def is_coordinate_pair(text: str) -> bool:
    """True for pickup strings like '12.97, 77.59'."""
    return bool(text and _LAT_LNG_RE.match(text))


def _match(part: str, lookup: dict) -> Optional[str]:
    lower_part = part.lower()
    if lower_part in lookup:
        return lookup[lower_part]
    for word in part.split():
        if word.lower() in lookup:
            return lookup[word.lower()]
    return None


def parse_state_district(address: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Extract (state, district) from a comma-separated free-text address.

    Each comma part is tried whole first, then word by word. Later parts win,
    so "Pune, Maharashtra 411001" yields ("Maharashtra", "Pune").
    """
    state = None
    district = None
    if not address:
        return state, district

    for part in (p.strip() for p in address.split(",")):
        if not part:
            continue
        state = _match(part, _STATE_LOOKUP) or state
        district = _match(part, _DISTRICT_LOOKUP) or district

    return state, district
