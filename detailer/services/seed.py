from datetime import datetime, timezone
from urllib.parse import quote_plus

from detailer.models import Database, Doctor, Presentation, Slide

PRESENTATION_1_ID = "presentation-1"
PRESENTATION_2_ID = "presentation-2"

CARDIO_IMAGES = [
    "/slides/title.png",
    "/slides/agenda.png",
    "/slides/about-us.png",
    "/slides/product-overview.png",
    "/slides/product-benefits.png",
    "/slides/market-overview.png",
]

CARDIO_SLIDES = [
    ("Slide 1: Cardiomax Overview",
     "Cardiomax is a next-generation ACE inhibitor for hypertension management"),
    ("Slide 2: Clinical Indications",
     "Primary indications include hypertension, heart failure, and post-MI treatment"),
    ("Slide 3: Mechanism of Action",
     "Selectively blocks angiotensin II receptors with higher binding affinity"),
    ("Slide 4: Dosage Guidelines",
     "Starting dose: 5mg daily, may increase to 10mg after 2 weeks"),
    ("Slide 5: Side Effects Profile",
     "Common side effects include dry cough (3%), dizziness (2%), and headache (1%)"),
    ("Slide 6: Patient Outcomes",
     "Clinical trials show 24% reduction in cardiovascular events over 5 years"),
]

GLUCO_IMAGE_LABELS = [
    "Glucobalance Title",
    "Treatment Agenda",
    "Company Profile",
    "Drug Mechanism",
    "Clinical Benefits",
    "Market Analysis",
]

GLUCO_SLIDES = [
    ("Slide 1: Glucobalance Introduction",
     "Glucobalance is a dual SGLT2/GLP-1 inhibitor for type 2 diabetes"),
    ("Slide 2: Treatment Indications",
     "Indicated for adults with T2DM with inadequate control on metformin"),
    ("Slide 3: Pharmacodynamics",
     "Increases glucose excretion and improves insulin sensitivity"),
    ("Slide 4: Administration Protocol",
     "Once-daily oral tablet, 25mg with or without food"),
    ("Slide 5: Adverse Reactions",
     "Monitor for hypoglycemia (2%), UTIs (4%), and dehydration (1%)"),
    ("Slide 6: Clinical Efficacy Data",
     "HbA1c reduction of 1.8% at 6 months compared to 0.9% with standard therapy"),
]

# Generic deck attached to every uploaded presentation.
SAMPLE_SLIDES = [
    ("Introduction to {title}", "Overview of medications and their mechanisms of action."),
    ("Key Benefits", "Primary benefits and clinical outcomes."),
    ("Dosage Information", "Recommended dosages and administration guidelines."),
    ("Side Effects", "Potential side effects and contraindications."),
    ("Clinical Studies", "Summary of clinical trial results and efficacy data."),
]


def placeholder_image(text: str, width: int = 600, height: int = 400) -> str:
    return f"/placeholder.svg?height={height}&width={width}&text={quote_plus(text)}"


def initial_data() -> Database:
    """Build the demo dataset: two doctors, two six-slide decks, no sessions."""
    created_at = datetime.now(timezone.utc).isoformat()
    db = Database(
        doctors=[
            Doctor(
                id="doctor-1",
                name="Dr. Sarah Smith",
                specialty="Cardiology",
                email="sarah.smith@hospital.com",
                phone="+1 (555) 123-4567",
            ),
            Doctor(
                id="doctor-2",
                name="Dr. Michael Johnson",
                specialty="Endocrinology",
                email="m.johnson@clinic.com",
                phone="+1 (555) 234-5678",
            ),
        ],
        presentations=[
            Presentation(
                id=PRESENTATION_1_ID,
                title="Cardiomax Treatment Protocol",
                description="New cardiovascular medication protocol for hypertension patients",
                slides=len(CARDIO_SLIDES),
                created_at=created_at,
            ),
            Presentation(
                id=PRESENTATION_2_ID,
                title="Glucobalance Therapy",
                description="Latest diabetes management medication and treatment guidelines",
                slides=len(GLUCO_SLIDES),
                created_at=created_at,
            ),
        ],
    )

    for index, ((title, content), image) in enumerate(zip(CARDIO_SLIDES, CARDIO_IMAGES)):
        db.slides.append(Slide(
            id=f"slide-1-{index}",
            presentation_id=PRESENTATION_1_ID,
            title=title,
            content=content,
            image_url=image,
            order=index,
        ))

    for index, ((title, content), label) in enumerate(zip(GLUCO_SLIDES, GLUCO_IMAGE_LABELS)):
        db.slides.append(Slide(
            id=f"slide-2-{index}",
            presentation_id=PRESENTATION_2_ID,
            title=title,
            content=content,
            image_url=placeholder_image(label, width=800, height=600),
            order=index,
        ))

    return db
