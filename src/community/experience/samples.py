"""Deterministic sample data served when the live store has nothing to offer.

These constants seed the fallback store and back the fallback reads for
trending topics, suggested connections, daily readings and the practice
catalog. They are returned as copies so callers cannot mutate them.
"""

from datetime import datetime, timedelta
from typing import Dict, List

from src.community.experience.models import (
    DailyReadingDto,
    DevotionPracticeDto,
    EventRecord,
    SuggestedConnectionDto,
    TrendingTopicDto,
    UserProfile,
)


SAMPLE_SUGGESTED_CONNECTIONS: List[SuggestedConnectionDto] = [
    SuggestedConnectionDto(
        id="b0cd98df-4e17-4a89-9cd2-5681a4c6e001",
        full_name="Swami Aniruddha",
        spiritual_path="Vaishnava",
        shared_interests=["Bhagavad Gita", "Kirtan"],
        mutual_followers=3,
        location="Vrindavan, India",
        vedic_qualifications=["Bhakti Shastri", "Sanskrit Scholar"],
        spiritual_qualifications=["Initiated Guru"],
        years_of_experience=18,
        areas_of_guidance=["Devotional Practices", "Scripture Study"],
        languages_spoken=["Hindi", "English"],
        introduction="Guiding seekers on the path of Bhakti for nearly two decades.",
    ),
    SuggestedConnectionDto(
        id="61f26f41-45e9-4541-9358-7d6e8fec8591",
        full_name="Meenakshi Devi",
        spiritual_path="Shakta",
        shared_interests=["Devi Mahatmyam", "Navaratri"],
        mutual_followers=5,
        location="Chennai, India",
        vedic_qualifications=["Shakta Tantra Acharya"],
        spiritual_qualifications=["Navaratri Ritualist"],
        years_of_experience=12,
        areas_of_guidance=["Devi Worship", "Ritual Arts"],
        languages_spoken=["Tamil", "English"],
        introduction="Priestess and scholar focusing on Devi traditions.",
    ),
    SuggestedConnectionDto(
        id="97a54f0b-aa08-4f5f-b6e7-5444f8a6adcd",
        full_name="Guru Prakash",
        spiritual_path="Advaita",
        shared_interests=["Upanishads", "Meditation"],
        mutual_followers=2,
        location="Rishikesh, India",
        vedic_qualifications=["Advaita Vedanta Vidwan"],
        spiritual_qualifications=["Sanyasa Diksha"],
        years_of_experience=22,
        areas_of_guidance=["Jnana Yoga", "Meditation"],
        languages_spoken=["Hindi", "English", "Sanskrit"],
        introduction="Advaita teacher hosting retreats across the Himalayas.",
    ),
    SuggestedConnectionDto(
        id="8f3f35af-b5bf-46ee-9ee6-8c3b4d138a88",
        full_name="Priya Sharma",
        spiritual_path="Shaiva",
        shared_interests=["Mahashivratri", "Rudram"],
        mutual_followers=4,
        location="Kathmandu, Nepal",
        vedic_qualifications=["Agama Shastra Pandit"],
        spiritual_qualifications=["Shaiva Guru"],
        years_of_experience=15,
        areas_of_guidance=["Shaiva Tantra", "Sound Healing"],
        languages_spoken=["Nepali", "English"],
        introduction="Shaiva mentor blending mantra therapy with daily sadhana guidance.",
    ),
]

SAMPLE_TRENDING_TOPICS: List[TrendingTopicDto] = [
    TrendingTopicDto(topic="Bhagavad Gita", post_count=128, like_count=482,
                     velocity_score=0.92, sentiment="positive"),
    TrendingTopicDto(topic="Navaratri", post_count=86, like_count=365,
                     velocity_score=0.88, sentiment="joyful"),
    TrendingTopicDto(topic="Meditation Retreats", post_count=54, like_count=212,
                     velocity_score=0.74),
    TrendingTopicDto(topic="Devi Mahatmyam", post_count=43, like_count=190,
                     velocity_score=0.7, sentiment="devotional"),
    TrendingTopicDto(topic="Kirtan", post_count=67, like_count=240,
                     velocity_score=0.69, sentiment="uplifting"),
]

SAMPLE_COMMUNITY_MEMBERS: List[UserProfile] = [
    UserProfile(
        id="community-1",
        full_name="Ananya Iyer",
        spiritual_path="Vaishnava",
        interests=["Bhagavad Gita", "Bhakti Yoga"],
        location="Bengaluru, India",
        bio="Kirtan facilitator and Gita study circle host.",
        vedic_qualifications=["Bhakti Shastri"],
        spiritual_qualifications=["Certified Kirtan Leader"],
        years_of_experience=9,
        areas_of_guidance=["Kirtan", "Bhakti Study"],
        languages_spoken=["Kannada", "English"],
        introduction="Leads weekly satsangs for urban professionals.",
    ),
    UserProfile(
        id="community-2",
        full_name="Ravi Narayanan",
        spiritual_path="Shaiva",
        interests=["Mahashivratri", "Rudram"],
        location="Coimbatore, India",
        bio="Volunteer at Isha Foundation, passionate about Nada Yoga.",
        vedic_qualifications=["Veda Pathashala Graduate"],
        spiritual_qualifications=["Isha Hatha Yoga Teacher"],
        years_of_experience=7,
        areas_of_guidance=["Hatha Yoga", "Nada Yoga"],
        languages_spoken=["Tamil", "English"],
    ),
    UserProfile(
        id="community-3",
        full_name="Saraswati Das",
        spiritual_path="Shakta",
        interests=["Sri Vidya", "Devi Mahatmyam"],
        location="Kolkatta, India",
        bio="Leads weekly lalita sahasranama chanting circles.",
        vedic_qualifications=["Sri Vidya Upasaka"],
        spiritual_qualifications=["Devi Sadhana Guide"],
        years_of_experience=11,
        areas_of_guidance=["Chanting", "Ritual Arts"],
        languages_spoken=["Bengali", "Hindi", "English"],
    ),
    UserProfile(
        id="community-4",
        full_name="Rajesh Patel",
        spiritual_path="Smartism",
        interests=["Upanishads", "Jnana Yoga"],
        location="Ahmedabad, India",
        bio="Hosts Vedanta discussion groups for young seekers.",
        vedic_qualifications=["Vedanta Acharya"],
        spiritual_qualifications=["Jnana Yoga Coach"],
        years_of_experience=10,
        areas_of_guidance=["Vedanta", "Mindfulness"],
        languages_spoken=["Gujarati", "Hindi", "English"],
    ),
    UserProfile(
        id="community-5",
        full_name="Lakshmi Prasad",
        spiritual_path="Vaishnava",
        interests=["Kirtan", "Seva"],
        location="Hyderabad, India",
        bio="Co-creates community seva opportunities with temple trusts.",
        vedic_qualifications=["Bhakti Vaibhava"],
        spiritual_qualifications=["Community Organizer"],
        years_of_experience=8,
        areas_of_guidance=["Seva Planning", "Devotional Music"],
        languages_spoken=["Telugu", "English"],
    ),
]

DEVOTION_PRACTICES: List[DevotionPracticeDto] = [
    DevotionPracticeDto(id="practice-1", name="Japa Meditation",
                        description="108 mantra repetitions",
                        base_points=20, category="meditation"),
    DevotionPracticeDto(id="practice-2", name="Scripture Reading",
                        description="Read for at least 15 minutes",
                        base_points=15, category="study"),
    DevotionPracticeDto(id="practice-3", name="Seva",
                        description="Offer service to temple/community",
                        base_points=25, category="service"),
    DevotionPracticeDto(id="practice-4", name="Kirtan",
                        description="Lead or participate in kirtan session",
                        base_points=30, category="devotion"),
]

GENERAL_READING_PATH = "general"

_READINGS_BY_PATH: Dict[str, Dict[str, str]] = {
    "vaishnava": {
        "id": "reading-vaishnava-1",
        "title": "Bhagavad Gita – Chapter 12",
        "body": (
            "Lord Krishna describes the qualities of a true devotee who is very "
            "dear to Him. Reflect on verses 13-20 and contemplate how compassion, "
            "equanimity, and devotion manifest in your daily life."
        ),
        "source_url": "https://vedabase.io/en/library/bg/12/13-20/",
        "difficulty": "intermediate",
        "summary": (
            "Devotion expressed through humility, compassion, and unwavering "
            "faith forms the heart of Bhakti as shared by Lord Krishna."
        ),
    },
    "shakta": {
        "id": "reading-shakta-1",
        "title": "Devi Mahatmyam – Chapter 5",
        "body": (
            "Goddess Durga engages in a fierce battle with the asura "
            "Dhumralochana. Meditate on the symbolism of the divine feminine "
            "conquering arrogance and ego."
        ),
        "source_url": "https://www.sacred-texts.com/hin/dg/dg11.htm",
        "difficulty": "intermediate",
        "summary": (
            "The Devi’s victory reminds us to invoke inner strength and clarity "
            "when facing the forces clouding our discernment."
        ),
    },
    GENERAL_READING_PATH: {
        "id": "reading-general-1",
        "title": "Yoga Sutra 1.2",
        "body": (
            "Yogas chitta vritti nirodhah – Yoga is the stilling of the "
            "fluctuations of the mind. Take five minutes to breathe and observe "
            "your thoughts gently settle."
        ),
        "source_url": "https://www.sacred-texts.com/hin/yogasutra/index.htm",
        "difficulty": "beginner",
        "summary": (
            "Mindfulness arises when we lovingly observe the mind and rest in "
            "the Self beyond its waves."
        ),
    },
}

SAMPLE_EVENT_ID = "event-1"


def sample_reading(path, now: datetime) -> DailyReadingDto:
    """Sample reading for a spiritual path, or the general one."""
    key = path.strip().lower() if path else GENERAL_READING_PATH
    if key not in _READINGS_BY_PATH:
        key = GENERAL_READING_PATH
    return DailyReadingDto(path=key, recommended_at=now, **_READINGS_BY_PATH[key])


def sample_events(now: datetime) -> List[EventRecord]:
    return [
        EventRecord(
            id=SAMPLE_EVENT_ID,
            creator_id="b0cd98df-4e17-4a89-9cd2-5681a4c6e001",
            title="Full Moon Kirtan Gathering",
            description=(
                "An evening of ecstatic chanting under the full moon followed "
                "by satsang."
            ),
            start_at=now + timedelta(days=1),
            end_at=now + timedelta(days=1, hours=2, minutes=30),
            location="Community Yoga Hall, Bengaluru",
            tags=["kirtan", "bhakti"],
            capacity=120,
        )
    ]


def practice_catalog() -> List[DevotionPracticeDto]:
    return [practice.model_copy() for practice in DEVOTION_PRACTICES]


def find_practice(practice_id: str):
    for practice in DEVOTION_PRACTICES:
        if practice.id == practice_id:
            return practice
    return None
