"""Domain services for schools, users, classes, courses, attendance, finance, events and timetables."""