#!/usr/bin/env python3
"""
Local fallback coach
Builds a short, safe, templated plan from the user's profile without calling
any external API. This is the last provider of every chain and never fails.
"""

from models import UserProfile

GOAL_PHRASES = {
    'weight_loss': 'lose weight',
    'muscle_gain': 'build muscle',
    'general_fitness': 'improve general fitness',
    'endurance': 'increase endurance',
}

LEVEL_LABELS = {
    'beginner': 'beginner',
    'intermediate': 'intermediate',
    'advanced': 'advanced',
}

DEFAULT_PROTEIN_GRAMS = 120
PROTEIN_GRAMS_PER_KG = 1.8


def format_goal(goal):
    return GOAL_PHRASES.get(goal) or goal or 'improve fitness'


def format_level(level):
    return LEVEL_LABELS.get(level, 'beginner')


def _as_number(value):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _format_measure(value, unit):
    number = _as_number(value)
    if number is None:
        return ''
    # 80.0 -> "80kg", 80.5 -> "80.5kg"
    if number.is_integer():
        number = int(number)
    return f"{number}{unit}"


def generate_fitness_response(user_message, profile):
    """Return a templated plan: greeting, strength, cardio, nutrition, safety"""
    profile = profile or UserProfile()
    name = profile.name or 'Athlete'
    goal = format_goal(profile.fitness_goal)
    level = format_level(profile.fitness_level)

    intro = f"Hi {name}! Here's a quick plan to help you {goal} ({level})."
    context = ', '.join(filter(None, [
        _format_measure(profile.weight, 'kg'),
        _format_measure(profile.height, 'cm'),
    ]))
    if context:
        intro = f"{intro} ({context})"

    strength = (
        "Strength (3 days):\n"
        "  - Full-body A: Squat 3x8-10, Push-up/Bench 3x8-10, Row 3x10-12, Plank 3x30-45s\n"
        "  - Full-body B: Deadlift 3x5, Overhead Press 3x8-10, Lat Pulldown/Pull-up 3x6-8, Side Plank 3x30s/side\n"
        "  - Accessories: Lunges 3x12/leg, DB Curls 2x12, Triceps Pushdown 2x12"
    )

    cardio = (
        "Cardio (2 days):\n"
        "  - 20-30 min brisk walk, cycle, or jog at easy-moderate pace\n"
        "  - Optional finisher: 5x1 min faster/1 min easy"
    )

    weight = _as_number(profile.weight)
    if weight is not None:
        protein = int(weight * PROTEIN_GRAMS_PER_KG + 0.5)
    else:
        protein = DEFAULT_PROTEIN_GRAMS
    nutrition = (
        "Nutrition:\n"
        f"  - Protein: ~1.6-2.2g/kg/day (aim ~{protein}g)\n"
        "  - Eat mostly whole foods; add 300-400 kcal/day for muscle gain\n"
        "  - Hydrate well; 7-9h sleep/night"
    )

    safety = (
        "Progression & Safety:\n"
        "  - Add small weights or reps weekly if form is solid\n"
        "  - Warm up 5-10 min; stop if sharp pain\n"
        "  - Track workouts; adjust based on energy and recovery"
    )

    return '\n\n'.join([intro, strength, cardio, nutrition, safety])
