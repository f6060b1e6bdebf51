from config.schema import (
    CampusConfig,
    CollegeRoomDef,
    DepartmentDef,
    ElectiveConfig,
    ElectiveDef,
    RoomCatalogConfig,
    TimeGridConfig,
)


DEPARTMENTS = {
    "CSE": "Computer Science & Engineering",
    "CSM": "Computer Science & Management",
    "ECE": "Electronics & Communication",
    "EEE": "Electrical & Electronics Engineering",
    "IT": "Information Technology",
}

# Raum-Kennung → (Name, Kapazität)
COLLEGE_ROOMS: dict[str, tuple[str, int]] = {
    "101": ("Room 101", 40), "102": ("Room 102", 45),
    "103": ("Chemistry Lab", 20), "104": ("Room 104", 40),
    "105": ("CSM Lab", 30), "106": ("Room 106", 50),
    "EEE_LAB": ("EEE Lab", 20), "115": ("Room 115", 35),
    "116": ("Room 116", 35), "117": ("Room 117", 35),
    "118": ("Room 118", 35), "119": ("Room 119", 35),
    "AUD": ("Auditorium", 150),
    "201": ("Room 201", 40), "202": ("Room 202", 45),
    "203": ("Room 203", 40), "CSE1": ("CSE Lab 1", 30),
    "CSE2": ("CSE Lab 2", 30), "CSE3": ("CSE Lab 3", 30),
    "CSE4": ("CSE Lab 4", 30), "PROJ_LAB": ("Project Lab", 25),
    "CSE5": ("CSE Lab 5", 30), "215": ("Room 215", 40),
    "216": ("Room 216", 40), "C_LAB": ("C Lab", 25),
    "ENG_LAB": ("English Lab", 30), "SPORTS": ("Sports Room", 100),
    "221": ("Room 221", 50),
    "301": ("Room 301", 60), "302": ("Room 302", 60),
    "IT_LAB": ("IT Lab", 30), "LIB": ("Library", 200),
    "315": ("Room 315", 50), "316": ("Room 316", 50),
    "317": ("Room 317", 50), "318": ("Room 318", 50),
    "SIM1": ("Simulation Lab 1", 20), "SIM2": ("Simulation Lab 2", 20),
    "401": ("Room 401", 55), "402": ("Room 402", 55),
    "403": ("Room 403", 55), "415": ("Room 415", 60),
    "416": ("Room 416", 60),
}

LAB_ROOMS = {
    "103", "105", "EEE_LAB", "CSE1", "CSE2", "CSE3", "CSE4", "CSE5",
    "PROJ_LAB", "C_LAB", "ENG_LAB", "IT_LAB", "SIM1", "SIM2",
}

_SPECIAL_TYPES = {"AUD": "auditorium", "LIB": "library", "SPORTS": "sports"}

# Stockwerke: Reihenfolge im Katalog folgt den Etagen 1–4
_FLOOR_OF = {
    **{r: 1 for r in ["101", "102", "103", "104", "105", "106", "EEE_LAB",
                      "115", "116", "117", "118", "119", "AUD"]},
    **{r: 2 for r in ["201", "202", "203", "CSE1", "CSE2", "CSE3", "CSE4",
                      "PROJ_LAB", "CSE5", "215", "216", "C_LAB", "ENG_LAB",
                      "SPORTS", "221"]},
    **{r: 3 for r in ["301", "302", "IT_LAB", "LIB", "315", "316", "317", "318"]},
    **{r: 4 for r in ["SIM1", "SIM2", "401", "402", "403", "415", "416"]},
}

PERIODS = [
    "8:40-9:30", "9:30-10:20", "10:20-11:10", "11:10-12:00",
    "12:00-12:50", "12:50-1:40", "1:40-2:30", "2:30-3:20", "3:20-4:10",
]


def room_type_for(room_id: str) -> str:
    """Raumtyp aus der Kennung ableiten."""
    if room_id in LAB_ROOMS:
        return "lab"
    return _SPECIAL_TYPES.get(room_id, "classroom")


def default_time_grid() -> TimeGridConfig:
    """Standard-Raster: Mo–Fr, neun Perioden von 8:40 bis 4:10."""
    return TimeGridConfig(
        day_names=["monday", "tuesday", "wednesday", "thursday", "friday"],
        periods=list(PERIODS),
        day_start_hour=8,
    )


def default_room_catalog() -> RoomCatalogConfig:
    return RoomCatalogConfig(
        rooms=[
            CollegeRoomDef(
                room_id=rid, name=name, capacity=cap,
                room_type=room_type_for(rid), floor=_FLOOR_OF.get(rid),
            )
            for rid, (name, cap) in COLLEGE_ROOMS.items()
        ],
        fallback_capacity=30,
    )


def default_electives() -> ElectiveConfig:
    """Wahlfach-Angebot des laufenden Semesters."""
    return ElectiveConfig(electives=[
        ElectiveDef(
            id="STT", code="CS401",
            name="Software Testing and Quality Assurance",
            professor="Dr. Sarah Johnson", credits=3, room="Lab 101",
            capacity=30, enrolled=25, schedule="Mon & Wed, 2:00 PM - 3:30 PM",
            prerequisites=["CS301", "CS302"],
            syllabus=["Unit Testing", "Integration Testing", "Test Automation",
                      "Performance Testing", "Quality Metrics"],
            difficulty="Medium",
        ),
        ElectiveDef(
            id="NLP", code="CS402", name="Natural Language Processing",
            professor="Prof. Michael Chen", credits=3, room="Lab 102",
            capacity=35, enrolled=32, schedule="Tue & Thu, 10:00 AM - 11:30 AM",
            prerequisites=["CS201", "MATH301"],
            syllabus=["Text Processing", "Word Embeddings", "Sequence Models",
                      "Transformers", "Applications"],
            difficulty="High",
        ),
        ElectiveDef(
            id="CC", code="CS403", name="Cloud Computing Infrastructure",
            professor="Dr. Robert Williams", credits=4, room="Lab 103",
            capacity=25, enrolled=20, schedule="Mon & Fri, 9:00 AM - 10:30 AM",
            prerequisites=["CS302", "CS303"],
            syllabus=["Virtualization", "Containerization", "Cloud Storage",
                      "Serverless", "Security"],
            difficulty="Medium",
        ),
        ElectiveDef(
            id="DS", code="CS404", name="Advanced Data Science",
            professor="Dr. Emily Davis", credits=3, room="Data Science Lab",
            capacity=40, enrolled=38, schedule="Wed & Fri, 1:00 PM - 2:30 PM",
            prerequisites=["CS301", "STAT301"],
            syllabus=["Big Data Tools", "ML Pipelines", "Model Deployment",
                      "A/B Testing", "Ethics"],
            difficulty="High",
        ),
        ElectiveDef(
            id="IOT", code="CS405", name="Internet of Things",
            professor="Prof. David Wilson", credits=3, room="IoT Lab",
            capacity=20, enrolled=15, schedule="Tue & Thu, 3:00 PM - 4:30 PM",
            prerequisites=["CS202", "PHY202"],
            syllabus=["IoT Architecture", "Sensors & Actuators",
                      "Communication Protocols", "Edge Computing", "Applications"],
            difficulty="Medium",
        ),
        ElectiveDef(
            id="BC", code="CS406", name="Blockchain Fundamentals",
            professor="Dr. Lisa Brown", credits=3, room="Lab 201",
            capacity=30, enrolled=28, schedule="Mon & Wed, 11:00 AM - 12:30 PM",
            prerequisites=["CS301", "CS304"],
            syllabus=["Cryptography", "Consensus Algorithms", "Smart Contracts",
                      "DApps", "Use Cases"],
            difficulty="High",
        ),
    ])


def default_campus_config() -> CampusConfig:
    """Vollständige Standard-Konfiguration."""
    return CampusConfig(
        college_name="Smart Campus College",
        semester="Fall 2024",
        uploaded_by="admin",
        departments=[DepartmentDef(code=c, name=n) for c, n in DEPARTMENTS.items()],
        time_grid=default_time_grid(),
        room_catalog=default_room_catalog(),
        electives=default_electives(),
    )
