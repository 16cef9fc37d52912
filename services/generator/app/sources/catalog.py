"""Curated long-form book entries used when the live search comes up short."""

BOOK_CATALOG = [
    {
        "title": "Atomic Habits",
        "author": "James Clear",
        "description": (
            "A practical framework for building good habits and breaking bad ones. "
            "Clear argues that tiny changes, compounded over months and years, "
            "produce remarkable results, and that systems matter more than goals. "
            "The four laws of behavior change: make it obvious, make it attractive, "
            "make it easy, make it satisfying."
        ),
        "quotes": [
            "You do not rise to the level of your goals. You fall to the level of your systems.",
            "Every action you take is a vote for the type of person you wish to become.",
        ],
    },
    {
        "title": "Man's Search for Meaning",
        "author": "Viktor E. Frankl",
        "description": (
            "Frankl's account of life in Nazi concentration camps and the "
            "psychotherapeutic method he built from it. Those who survived, he "
            "observed, were often those who held on to a sense of purpose, and "
            "meaning can be found even in unavoidable suffering."
        ),
        "quotes": [
            "Everything can be taken from a man but one thing: the last of the human freedoms, "
            "to choose one's attitude in any given set of circumstances.",
        ],
    },
    {
        "title": "Deep Work",
        "author": "Cal Newport",
        "description": (
            "The ability to focus without distraction on a cognitively demanding "
            "task is becoming rare at exactly the time it is becoming valuable. "
            "Newport lays out rules for training concentration, embracing boredom, "
            "and quitting the shallow work that crowds out what matters."
        ),
        "quotes": [
            "Clarity about what matters provides clarity about what does not.",
        ],
    },
    {
        "title": "Thinking, Fast and Slow",
        "author": "Daniel Kahneman",
        "description": (
            "A tour of the two systems that drive the way we think: the fast, "
            "intuitive and emotional one, and the slower, deliberate and logical "
            "one. Kahneman shows where each can be trusted and how cognitive "
            "biases shape choices in business and everyday life."
        ),
        "quotes": [
            "Nothing in life is as important as you think it is, while you are thinking about it.",
        ],
    },
    {
        "title": "The Power of Now",
        "author": "Eckhart Tolle",
        "description": (
            "A guide to spiritual awakening centered on presence. Tolle argues "
            "that most suffering comes from identification with the thinking mind "
            "and that freedom starts when attention rests in the present moment."
        ),
        "quotes": [
            "Realize deeply that the present moment is all you have.",
        ],
    },
    {
        "title": "Mindset: The New Psychology of Success",
        "author": "Carol S. Dweck",
        "description": (
            "Dweck's research on fixed and growth mindsets: people who believe "
            "abilities can be developed learn more, persist longer, and achieve "
            "more than those who believe talent is innate. Includes guidance for "
            "parents, teachers, managers and athletes."
        ),
        "quotes": [
            "Becoming is better than being.",
        ],
    },
    {
        "title": "The 7 Habits of Highly Effective People",
        "author": "Stephen R. Covey",
        "description": (
            "A principle-centered approach to personal and professional "
            "effectiveness, moving from dependence to independence to "
            "interdependence through seven habits, from being proactive to "
            "sharpening the saw."
        ),
        "quotes": [
            "Most people do not listen with the intent to understand; they listen with the intent to reply.",
        ],
    },
    {
        "title": "Meditations",
        "author": "Marcus Aurelius",
        "description": (
            "Private notes of a Roman emperor, written as exercises in Stoic "
            "philosophy: on duty, impermanence, self-discipline, and keeping "
            "one's judgment clear in the face of whatever the day brings."
        ),
        "quotes": [
            "You have power over your mind, not outside events. Realize this, and you will find strength.",
        ],
    },
]
